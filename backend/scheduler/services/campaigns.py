"""
Campaign creation, deletion, membership removal and host assignment.

Creation is one transaction (campaign, invite, creator membership, host).
Deletion cannot be: dependent records may exceed one batch, so it deletes in
sequential batches and is safe to run again after a partial failure.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar
from uuid import uuid4

from scheduler.core.config import MAX_BATCH_OPERATIONS, settings
from scheduler.core.errors import (
    ConflictError,
    ConflictKind,
    DeletionIncompleteError,
    InvalidInputError,
    StoreError,
)
from scheduler.core.store import DocumentStore, Transaction
from scheduler.schemas.campaign import Campaign, DeletionReport, HostSettings, Invite, Membership
from scheduler.schemas.state import Actor
from scheduler.schemas.status import UserRole
from scheduler.services.invites import allocate_invite_code, guard_code_is_free, list_campaign_invites
from scheduler.services.permissions import ensure_member, require_admin
from scheduler.services.refs import (
    CAMPAIGNS_COLLECTION,
    availability_collection,
    availability_path,
    campaign_path,
    invite_path,
    member_path,
    members_collection,
    settings_path,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def normalize_name(name: str) -> str:
    """Collapse extra whitespace in user-provided labels."""
    return re.sub(r"\s+", " ", name or "").strip()


def validate_campaign_name(name: str, max_length: Optional[int] = None) -> str:
    if max_length is None:
        max_length = settings.CAMPAIGN_NAME_MAX_LENGTH
    normalized = normalize_name(name)
    if not normalized:
        raise InvalidInputError("Campaign name is required")
    if len(normalized) > max_length:
        raise InvalidInputError(f"Campaign name must be at most {max_length} characters")
    return normalized


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def create_campaign(
    store: DocumentStore,
    actor: Actor,
    name: str,
    code_factory: Optional[Callable[[], str]] = None,
    max_attempts: Optional[int] = None,
) -> Campaign:
    require_admin(actor, "create campaigns")
    name = validate_campaign_name(name)
    campaign_id = uuid4().hex
    now = datetime.now(timezone.utc)

    def build(code: str) -> Callable[[Transaction], Campaign]:
        def write(txn: Transaction) -> Campaign:
            guard_code_is_free(txn, code)
            campaign = Campaign(
                id=campaign_id,
                name=name,
                invite_code=code,
                invite_enabled=True,
                created_by_uid=actor.uid,
                created_at=now,
            )
            invite = Invite(code=code, campaign_id=campaign_id, created_by_uid=actor.uid, created_at=now)
            membership = Membership(
                uid=actor.uid,
                name=actor.name,
                email=actor.email,
                role=UserRole.ADMIN,
                joined_at=now,
            )
            txn.set(campaign_path(campaign_id), campaign.to_document())
            txn.set(invite_path(code), invite.to_document())
            txn.set(member_path(campaign_id, actor.uid), membership.to_document())
            txn.set(settings_path(campaign_id), HostSettings(host_user_id=actor.uid).to_document())
            return campaign

        return write

    campaign = allocate_invite_code(store, build, code_factory, max_attempts)
    logger.info(f"Campaign {campaign_id} created by {actor.uid}")
    return campaign


def deletion_paths(store: DocumentStore, campaign_id: str) -> List[str]:
    """Every document belonging to the campaign, root first."""
    members = store.list_documents(members_collection(campaign_id))
    availability = store.list_documents(availability_collection(campaign_id))
    codes = [invite.code for invite in list_campaign_invites(store, campaign_id)]

    campaign_data = store.get(campaign_path(campaign_id))
    if campaign_data and campaign_data.get("inviteCode"):
        codes.append(campaign_data["inviteCode"])

    paths = [campaign_path(campaign_id)]
    paths.extend(invite_path(code) for code in dict.fromkeys(codes))
    paths.append(settings_path(campaign_id))
    paths.extend(member_path(campaign_id, uid) for uid in sorted(members))
    paths.extend(availability_path(campaign_id, uid) for uid in sorted(availability))
    return paths


def delete_campaign(
    store: DocumentStore,
    actor: Actor,
    campaign_id: str,
    batch_size: Optional[int] = None,
) -> DeletionReport:
    """
    Delete a campaign and everything under it in sequential batches.

    A failed batch leaves earlier batches applied and raises
    ``DeletionIncompleteError``; calling this again finishes the job because
    deleting a missing document is a no-op.
    """
    require_admin(actor, "delete campaigns")
    size = settings.DELETE_BATCH_SIZE if batch_size is None else batch_size
    if size < 1 or size > MAX_BATCH_OPERATIONS:
        raise InvalidInputError(f"Batch size must be between 1 and {MAX_BATCH_OPERATIONS}")

    batches = list(chunked(deletion_paths(store, campaign_id), size))
    batch_sizes: List[int] = []
    for index, batch in enumerate(batches):
        try:
            store.batch_delete(batch)
        except StoreError as exc:
            logger.error(f"Deletion batch {index + 1}/{len(batches)} of campaign {campaign_id} failed: {exc}")
            raise DeletionIncompleteError(campaign_id, index, len(batches), exc) from exc
        batch_sizes.append(len(batch))
        logger.debug(f"Deleted batch {index + 1}/{len(batches)} ({len(batch)} documents)")

    logger.info(f"Campaign {campaign_id} deleted in {len(batches)} batch(es)")
    return DeletionReport(campaign_id=campaign_id, batch_sizes=batch_sizes)


def _next_host(members: dict, removed_user_id: str) -> str:
    remaining = [
        Membership.from_document(data, uid=uid) for uid, data in members.items() if uid != removed_user_id
    ]
    if not remaining:
        return ""
    remaining.sort(key=lambda member: (member.joined_at is None, member.joined_at, member.uid))
    return remaining[0].uid


def kick_member(store: DocumentStore, actor: Actor, campaign_id: str, user_id: str) -> HostSettings:
    """Remove a member and their availability; hand the host role on if they held it."""
    require_admin(actor, "remove members")
    if user_id == actor.uid:
        raise InvalidInputError("Admins cannot remove themselves")

    def remove(txn: Transaction) -> HostSettings:
        ensure_member(txn, campaign_id, user_id)
        host = HostSettings.from_document(txn.get(settings_path(campaign_id)) or {})
        members = txn.list_documents(members_collection(campaign_id))

        txn.delete(member_path(campaign_id, user_id))
        txn.delete(availability_path(campaign_id, user_id))
        if host.host_user_id == user_id:
            host = HostSettings(host_user_id=_next_host(members, user_id))
            txn.set(settings_path(campaign_id), host.to_document(), merge=True)
        return host

    host = store.run_transaction(remove)
    logger.info(f"Removed {user_id} from campaign {campaign_id}")
    return host


def assign_host(store: DocumentStore, actor: Actor, campaign_id: str, user_id: str) -> HostSettings:
    require_admin(actor, "assign the host")

    def assign(txn: Transaction) -> HostSettings:
        if txn.get(campaign_path(campaign_id)) is None:
            raise ConflictError(ConflictKind.CAMPAIGN_NOT_FOUND)
        ensure_member(txn, campaign_id, user_id)
        host = HostSettings(host_user_id=user_id)
        txn.set(settings_path(campaign_id), host.to_document(), merge=True)
        return host

    host = store.run_transaction(assign)
    logger.info(f"Host of campaign {campaign_id} set to {user_id}")
    return host


def list_campaigns_for_user(store: DocumentStore, user_id: str) -> List[Campaign]:
    campaigns = [
        Campaign.from_document(data, id=campaign_id)
        for campaign_id, data in store.list_documents(CAMPAIGNS_COLLECTION).items()
        if store.get(member_path(campaign_id, user_id)) is not None
    ]
    return sorted(campaigns, key=lambda campaign: (campaign.name.lower(), campaign.id))
