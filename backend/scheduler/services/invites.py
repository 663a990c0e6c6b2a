"""
Invite codes: generation, allocation under contention, redemption, revocation.

Codes look like ``XXXX-XXXX-XXXX`` and avoid characters that are easy to
misread (0/O, 1/I/L).  They are stored lower-case and shown upper-case.
"""

from __future__ import annotations

import logging
import random
import re
import secrets
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol, TypeVar

from scheduler.core.config import Settings, settings
from scheduler.core.errors import (
    ConflictError,
    ConflictKind,
    InvalidInputError,
    InviteAllocationError,
)
from scheduler.core.store import DocumentStore, Transaction
from scheduler.schemas.campaign import Campaign, HostSettings, Invite, Membership, Redemption
from scheduler.schemas.state import Actor, Identity
from scheduler.schemas.status import UserRole, stronger_role
from scheduler.services.permissions import require_admin
from scheduler.services.refs import (
    INVITES_COLLECTION,
    campaign_path,
    invite_path,
    member_path,
    settings_path,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

INVITE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
INVITE_SEGMENTS = (4, 4, 4)
INVITE_CODE_PATTERN = re.compile(r"^[a-hjkmnp-z2-9]{4}-[a-hjkmnp-z2-9]{4}-[a-hjkmnp-z2-9]{4}$")


class ChoiceSource(Protocol):
    def choice(self, seq): ...


def _random_source() -> Callable[[str], str]:
    try:
        secrets.token_bytes(1)
    except NotImplementedError:
        # os.urandom has no backing source on this platform
        logger.warning("No secure random source available; invite codes fall back to a predictable generator")
        return random.Random().choice
    return secrets.choice


def generate_code(rng: Optional[ChoiceSource] = None) -> str:
    choice = rng.choice if rng is not None else _random_source()
    segments = ["".join(choice(INVITE_ALPHABET) for _ in range(length)) for length in INVITE_SEGMENTS]
    return "-".join(segments)


def normalize_invite_code(value: str) -> str:
    """Accept mixed case and stray spacing from users."""
    return re.sub(r"\s+", "", value or "").lower()


def is_valid_invite_code(value: str) -> bool:
    return bool(INVITE_CODE_PATTERN.match(normalize_invite_code(value)))


def display_invite_code(code: str) -> str:
    return code.upper()


def legacy_invite_roles(config: Settings | None = None) -> Dict[str, UserRole]:
    """Static codes from the environment, consulted only when no invite document matches."""
    config = config or settings
    roles = {}
    if config.LEGACY_MEMBER_INVITE_CODE:
        roles[normalize_invite_code(config.LEGACY_MEMBER_INVITE_CODE)] = UserRole.MEMBER
    if config.LEGACY_ADMIN_INVITE_CODE:
        roles[normalize_invite_code(config.LEGACY_ADMIN_INVITE_CODE)] = UserRole.ADMIN
    return roles


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def allocate_invite_code(
    store: DocumentStore,
    build: Callable[[str], Callable[[Transaction], T]],
    code_factory: Optional[Callable[[], str]] = None,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run ``build(code)`` as a transaction with fresh codes until one does not collide.

    Only ``CODE_COLLISION`` conflicts are retried; any other error propagates
    immediately.
    """
    code_factory = code_factory or generate_code
    attempts = settings.INVITE_CODE_MAX_ATTEMPTS if max_attempts is None else max_attempts
    if attempts < 1:
        raise InvalidInputError("Invite code allocation needs at least one attempt")
    for attempt in range(1, attempts + 1):
        code = normalize_invite_code(code_factory())
        try:
            return store.run_transaction(build(code))
        except ConflictError as exc:
            if exc.kind != ConflictKind.CODE_COLLISION:
                raise
            logger.warning(f"Invite code collision on attempt {attempt}/{attempts}")
    logger.error(f"Giving up on invite code allocation after {attempts} attempts")
    raise InviteAllocationError(attempts)


def guard_code_is_free(txn: Transaction, code: str) -> None:
    if txn.get(invite_path(code)) is not None:
        raise ConflictError(ConflictKind.CODE_COLLISION)


def create_invite(
    store: DocumentStore,
    actor: Actor,
    campaign_id: str,
    role: Optional[UserRole] = None,
    code_factory: Optional[Callable[[], str]] = None,
    max_attempts: Optional[int] = None,
) -> Invite:
    """
    Create an invite for ``campaign_id``.

    Without a role this replaces the campaign's single durable invite (the
    previous one is revoked in the same transaction). With a role it creates a
    single-use invite that grants that role.
    """
    require_admin(actor, "create invites")
    now = _utcnow()

    def build(code: str) -> Callable[[Transaction], Invite]:
        def write(txn: Transaction) -> Invite:
            campaign_data = txn.get(campaign_path(campaign_id))
            if campaign_data is None:
                raise ConflictError(ConflictKind.CAMPAIGN_NOT_FOUND)
            guard_code_is_free(txn, code)
            campaign = Campaign.from_document(campaign_data, id=campaign_id)
            previous = None
            if role is None and campaign.invite_code and campaign.invite_code != code:
                previous = txn.get(invite_path(campaign.invite_code))

            invite = Invite(
                code=code,
                campaign_id=campaign_id,
                role=role,
                enabled=True,
                created_by_uid=actor.uid,
                created_at=now,
            )
            txn.set(invite_path(code), invite.to_document())
            if role is None:
                if previous is not None:
                    txn.set(invite_path(campaign.invite_code), {"revoked": True, "enabled": False}, merge=True)
                txn.set(campaign_path(campaign_id), {"inviteCode": code, "inviteEnabled": True}, merge=True)
            return invite

        return write

    invite = allocate_invite_code(store, build, code_factory, max_attempts)
    logger.info(f"Created invite for campaign {campaign_id} (role={invite.role.value if invite.role else 'campaign'})")
    return invite


def list_campaign_invites(store: DocumentStore, campaign_id: str) -> List[Invite]:
    documents = store.list_documents(INVITES_COLLECTION, where=("campaignId", campaign_id))
    invites = [Invite.from_document(data, code=code) for code, data in documents.items()]
    return sorted(invites, key=lambda invite: (invite.created_at is None, invite.created_at, invite.code))


def redeem_invite(
    store: DocumentStore,
    user: Identity,
    code: str,
    legacy_codes: Optional[Dict[str, UserRole]] = None,
) -> Redemption:
    normalized = normalize_invite_code(code)
    legacy = legacy_invite_roles() if legacy_codes is None else legacy_codes
    if normalized not in legacy and not INVITE_CODE_PATTERN.match(normalized):
        raise InvalidInputError("Invite code must look like XXXX-XXXX-XXXX")
    now = _utcnow()

    def redeem(txn: Transaction) -> Redemption:
        invite_data = txn.get(invite_path(normalized))
        invite: Optional[Invite] = None
        if invite_data is None:
            if normalized not in legacy:
                raise ConflictError(ConflictKind.INVITE_NOT_FOUND)
            campaign_id = settings.APP_NAMESPACE
            role = legacy[normalized]
        else:
            invite = Invite.from_document(invite_data, code=normalized)
            if invite.revoked:
                raise ConflictError(ConflictKind.INVITE_REVOKED)
            if not invite.enabled:
                raise ConflictError(ConflictKind.INVITE_DISABLED)
            if invite.single_use and invite.redeemed_by_uid and invite.redeemed_by_uid != user.uid:
                raise ConflictError(ConflictKind.INVITE_ALREADY_REDEEMED)
            campaign_id = invite.campaign_id
            role = invite.role or UserRole.MEMBER
            if txn.get(campaign_path(campaign_id)) is None:
                raise ConflictError(ConflictKind.CAMPAIGN_NOT_FOUND)

        member_data = txn.get(member_path(campaign_id, user.uid))
        host = HostSettings.from_document(txn.get(settings_path(campaign_id)) or {})

        if invite is not None and invite.single_use and not invite.redeemed_by_uid:
            txn.set(
                invite_path(normalized),
                {"redeemedByUid": user.uid, "redeemedAt": now.isoformat()},
                merge=True,
            )

        if member_data is None:
            membership = Membership(uid=user.uid, name=user.name, email=user.email, role=role, joined_at=now)
            txn.set(member_path(campaign_id, user.uid), membership.to_document())
        else:
            existing = Membership.from_document(member_data, uid=user.uid)
            # Redeeming never downgrades an existing role
            role = stronger_role(existing.role, role)
            update = {"role": role.value}
            if user.name:
                update["name"] = user.name
            if user.email:
                update["email"] = user.email
            txn.set(member_path(campaign_id, user.uid), update, merge=True)

        became_host = not host.host_user_id
        if became_host:
            txn.set(settings_path(campaign_id), {"hostUserId": user.uid}, merge=True)

        return Redemption(
            campaign_id=campaign_id,
            role=role,
            already_member=member_data is not None,
            became_host=became_host,
        )

    redemption = store.run_transaction(redeem)
    logger.info(f"User {user.uid} redeemed an invite for campaign {redemption.campaign_id}")
    return redemption


def set_invite_enabled(store: DocumentStore, actor: Actor, campaign_id: str, enabled: bool) -> Campaign:
    """Toggle future redemptions of the campaign invite; existing members stay."""
    require_admin(actor, "change invite state")

    def update(txn: Transaction) -> Campaign:
        campaign_data = txn.get(campaign_path(campaign_id))
        if campaign_data is None:
            raise ConflictError(ConflictKind.CAMPAIGN_NOT_FOUND)
        campaign = Campaign.from_document(campaign_data, id=campaign_id)
        invite_data = txn.get(invite_path(campaign.invite_code)) if campaign.invite_code else None
        if invite_data is not None:
            if enabled and Invite.from_document(invite_data, code=campaign.invite_code).revoked:
                raise ConflictError(ConflictKind.INVITE_REVOKED)
            txn.set(invite_path(campaign.invite_code), {"enabled": enabled}, merge=True)
        txn.set(campaign_path(campaign_id), {"inviteEnabled": enabled}, merge=True)
        return campaign.model_copy(update={"invite_enabled": enabled})

    campaign = store.run_transaction(update)
    logger.info(f"Invite for campaign {campaign_id} {'enabled' if enabled else 'disabled'}")
    return campaign


def revoke_invite(store: DocumentStore, actor: Actor, campaign_id: str, code: str) -> Invite:
    """Permanently stop new redemptions of ``code``."""
    require_admin(actor, "revoke invites")
    normalized = normalize_invite_code(code)

    def revoke(txn: Transaction) -> Invite:
        invite_data = txn.get(invite_path(normalized))
        if invite_data is None:
            raise ConflictError(ConflictKind.INVITE_NOT_FOUND)
        invite = Invite.from_document(invite_data, code=normalized)
        if invite.campaign_id != campaign_id:
            raise ConflictError(ConflictKind.INVITE_NOT_FOUND)
        campaign_data = txn.get(campaign_path(campaign_id))

        txn.set(invite_path(normalized), {"revoked": True, "enabled": False}, merge=True)
        if campaign_data is not None and campaign_data.get("inviteCode") == normalized:
            txn.set(campaign_path(campaign_id), {"inviteEnabled": False}, merge=True)
        return invite.model_copy(update={"revoked": True, "enabled": False})

    invite = store.run_transaction(revoke)
    logger.info(f"Revoked invite {display_invite_code(normalized)} of campaign {campaign_id}")
    return invite
