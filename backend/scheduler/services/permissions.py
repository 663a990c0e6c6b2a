from __future__ import annotations

import logging
from typing import Iterable, Optional

from scheduler.core.config import settings
from scheduler.core.errors import AuthorizationError, ConflictError, ConflictKind
from scheduler.core.store import Transaction
from scheduler.schemas.campaign import Membership
from scheduler.schemas.state import Actor, Identity
from scheduler.schemas.status import UserRole
from scheduler.services.refs import member_path

logger = logging.getLogger(__name__)


def resolve_role(
    identity: Identity,
    membership: Optional[Membership],
    admin_emails: Optional[Iterable[str]] = None,
) -> UserRole:
    """Configured admin emails win; otherwise the campaign membership decides."""
    emails = {email.lower() for email in (settings.ADMIN_EMAILS if admin_emails is None else admin_emails)}
    if identity.email and identity.email.lower() in emails:
        return UserRole.ADMIN
    return membership.role if membership else UserRole.MEMBER


def build_actor(
    identity: Identity,
    membership: Optional[Membership],
    admin_emails: Optional[Iterable[str]] = None,
) -> Actor:
    return Actor(
        uid=identity.uid,
        name=identity.name,
        email=identity.email,
        role=resolve_role(identity, membership, admin_emails),
    )


def require_admin(actor: Actor, action: str) -> None:
    """Refuse locally, without a store round-trip, when the actor is known not to be admin."""
    if not actor.is_admin:
        logger.info(f"User {actor.uid} with role {actor.role.value} may not {action}")
        raise AuthorizationError(f"Only admins can {action}")


def ensure_member(txn: Transaction, campaign_id: str, user_id: str) -> Membership:
    data = txn.get(member_path(campaign_id, user_id))
    if data is None:
        raise ConflictError(ConflictKind.NOT_A_MEMBER)
    return Membership.from_document(data, uid=user_id)
