"""
One user's scheduling session.

The session holds the current ``SchedulerState`` value and is the only place
that replaces it.  Store snapshots arrive through a ``SnapshotChannel`` and are
folded in by a single loop (``run``) or on demand (``drain``).  Store calls run
in worker threads so the loop keeps consuming snapshots while they are in
flight.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from functools import partial
from typing import Any, Callable, Iterable, List, Optional

from scheduler.core.errors import AuthorizationError, InvalidInputError, SchedulerError
from scheduler.core.store import DocumentStore
from scheduler.schemas.availability import HostSummary
from scheduler.schemas.campaign import Campaign, DeletionReport, HostSettings, Invite, Redemption
from scheduler.schemas.state import Actor, Identity, OperationKind, SchedulerState
from scheduler.schemas.status import AvailabilityStatus, UserRole
from scheduler.services import campaigns, invites
from scheduler.services import state as transitions
from scheduler.services.channel import CampaignFeed, SnapshotChannel
from scheduler.services.dates import month_date_keys, to_date_key, to_month_value
from scheduler.services.pending_edits import prepare_commit
from scheduler.services.ranking import build_host_summary, can_view_summary
from scheduler.services.refs import availability_path

logger = logging.getLogger(__name__)


class SchedulerSession:
    def __init__(
        self,
        store: DocumentStore,
        channel: Optional[SnapshotChannel] = None,
        today: Optional[Callable[[], date]] = None,
        admin_emails: Optional[Iterable[str]] = None,
    ):
        self.store = store
        self.channel = channel or SnapshotChannel()
        self._today = today or date.today
        self._admin_emails = list(admin_emails) if admin_emails is not None else None
        self._feed: Optional[CampaignFeed] = None
        self.state = SchedulerState(month_value=to_month_value(self._today()))

    def dispatch(self, transition: Callable[..., SchedulerState], *args: Any) -> SchedulerState:
        self.state = transition(self.state, *args)
        return self.state

    def drain(self) -> int:
        """Apply every queued snapshot; returns how many were applied."""
        events = self.channel.drain_nowait()
        for event in events:
            self.dispatch(transitions.snapshot_received, event)
        return len(events)

    async def run(self) -> None:
        """The reconciliation loop; ends when the channel is closed."""
        self.channel.attach(asyncio.get_running_loop())
        await self.store.open()
        try:
            async for event in self.channel:
                self.dispatch(transitions.snapshot_received, event)
        finally:
            self._close_feed()
            await self.store.close()

    def stop(self) -> None:
        self.channel.close()

    def today_key(self) -> str:
        return to_date_key(self._today())

    # Identity and selection

    def sign_in(self, uid: str, name: str = "", email: str = "") -> SchedulerState:
        return self.dispatch(transitions.signed_in, Identity(uid=uid, name=name, email=email))

    def sign_out(self) -> SchedulerState:
        self._close_feed()
        return self.dispatch(transitions.signed_out)

    def select_campaign(self, campaign_id: str) -> SchedulerState:
        if campaign_id == self.state.campaign_id:
            return self.state
        self._close_feed()
        self.dispatch(transitions.campaign_selected, campaign_id)
        if campaign_id:
            self._feed = CampaignFeed.open(self.store, campaign_id, self.channel)
        return self.state

    def _close_feed(self) -> None:
        if self._feed is not None:
            self._feed.close()
            self._feed = None

    def list_campaigns(self) -> List[Campaign]:
        if self.state.identity is None:
            return []
        return campaigns.list_campaigns_for_user(self.store, self.state.identity.uid)

    def actor(self) -> Actor:
        actor = transitions.actor_for(self.state, self._admin_emails)
        if actor is None:
            raise AuthorizationError("Sign in first")
        return actor

    # Calendar

    def select_month(self, month_value: str) -> SchedulerState:
        return self.dispatch(transitions.month_selected, month_value, self._today())

    def select_brush(self, brush: AvailabilityStatus) -> SchedulerState:
        return self.dispatch(transitions.brush_selected, brush)

    def pointer_down(self, date_key: str) -> SchedulerState:
        return self.dispatch(transitions.painted, transitions.PaintGesture.DOWN, date_key, self.today_key())

    def pointer_enter(self, date_key: str) -> SchedulerState:
        return self.dispatch(transitions.painted, transitions.PaintGesture.ENTER, date_key, self.today_key())

    def pointer_up(self) -> SchedulerState:
        return self.dispatch(transitions.pointer_released)

    def click(self, date_key: str) -> SchedulerState:
        return self.dispatch(transitions.painted, transitions.PaintGesture.CLICK, date_key, self.today_key())

    def effective_status(self, user_id: str, date_key: str) -> AvailabilityStatus:
        return transitions.status_of(self.state, user_id, date_key)

    def host_summary(self) -> HostSummary:
        actor = self.actor()
        if not can_view_summary(actor, self.state.persisted.host_user_id):
            raise AuthorizationError("Only admins and the host can view the summary")
        member_ids = [member.uid for member in self.state.persisted.members]
        return build_host_summary(
            member_ids,
            month_date_keys(self.state.month_value, self._today()),
            self.effective_status,
            self.today_key(),
        )

    # Store operations

    async def save_availability(self) -> bool:
        """
        Write the signed-in user's pending edits as one document update.

        The batch is taken when the save starts; edits painted while the write
        is in flight stay pending.  Returns False when there was nothing to do.
        """
        identity = self.state.identity
        if identity is None or not self.state.campaign_id:
            return False
        if self.state.operation(OperationKind.SAVE_AVAILABILITY).in_flight:
            logger.debug("Save already in flight; ignoring")
            return False

        batch = prepare_commit(
            self.state.persisted.availability, self.state.pending, identity.uid, self.state.campaign_id
        )
        if batch is None:
            return False

        self.dispatch(transitions.operation_started, OperationKind.SAVE_AVAILABILITY, identity.uid)
        document = {
            "uid": identity.uid,
            "days": {date_key: status.value for date_key, status in batch.payload.items()},
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
        path = availability_path(batch.campaign_id, identity.uid)
        try:
            await asyncio.to_thread(self.store.set, path, document, True)
        except SchedulerError as exc:
            logger.warning(f"Saving availability for {identity.uid} failed: {exc}")
            self.dispatch(transitions.save_failed, batch, str(exc))
            return False
        self.dispatch(transitions.save_succeeded, batch)
        logger.info(f"Saved {len(batch.entries)} day(s) for {identity.uid}")
        return True

    async def _run_operation(
        self, kind: OperationKind, target: str, prepare: Callable[[], Callable[[], Any]]
    ) -> Any:
        """
        Run one store operation in a worker thread.

        ``prepare`` resolves the actor and campaign and returns the call to
        make; its errors land in the operation's error slot like store errors.
        """
        if self.state.operation(kind).in_flight:
            logger.debug(f"{kind.value} already in flight; ignoring")
            return None
        self.dispatch(transitions.operation_started, kind, target)
        try:
            call = prepare()
            result = await asyncio.to_thread(call)
        except SchedulerError as exc:
            logger.warning(f"{kind.value} failed: {exc}")
            self.dispatch(transitions.operation_failed, kind, str(exc))
            return None
        except Exception:
            self.dispatch(transitions.operation_failed, kind, "Unexpected error")
            raise
        self.dispatch(transitions.operation_finished, kind)
        return result

    def _require_campaign(self) -> str:
        if not self.state.campaign_id:
            raise InvalidInputError("Select a campaign first")
        return self.state.campaign_id

    def _require_identity(self) -> Identity:
        if self.state.identity is None:
            raise AuthorizationError("Sign in first")
        return self.state.identity

    async def create_campaign(self, name: str) -> Optional[Campaign]:
        campaign = await self._run_operation(
            OperationKind.CREATE_CAMPAIGN,
            "",
            lambda: partial(campaigns.create_campaign, self.store, self.actor(), name),
        )
        if campaign is not None:
            self.select_campaign(campaign.id)
        return campaign

    async def delete_campaign(self) -> Optional[DeletionReport]:
        campaign_id = self.state.campaign_id
        report = await self._run_operation(
            OperationKind.DELETE_CAMPAIGN,
            campaign_id,
            lambda: partial(campaigns.delete_campaign, self.store, self.actor(), self._require_campaign()),
        )
        if report is not None and self.state.campaign_id == campaign_id:
            self.select_campaign("")
        return report

    async def kick_member(self, user_id: str) -> Optional[HostSettings]:
        return await self._run_operation(
            OperationKind.KICK_MEMBER,
            user_id,
            lambda: partial(campaigns.kick_member, self.store, self.actor(), self._require_campaign(), user_id),
        )

    async def assign_host(self, user_id: str) -> Optional[HostSettings]:
        return await self._run_operation(
            OperationKind.ASSIGN_HOST,
            user_id,
            lambda: partial(campaigns.assign_host, self.store, self.actor(), self._require_campaign(), user_id),
        )

    async def set_invite_enabled(self, enabled: bool) -> Optional[Campaign]:
        return await self._run_operation(
            OperationKind.UPDATE_INVITE,
            self.state.campaign_id,
            lambda: partial(
                invites.set_invite_enabled, self.store, self.actor(), self._require_campaign(), enabled
            ),
        )

    async def create_invite(self, role: Optional[UserRole] = None) -> Optional[Invite]:
        return await self._run_operation(
            OperationKind.UPDATE_INVITE,
            self.state.campaign_id,
            lambda: partial(invites.create_invite, self.store, self.actor(), self._require_campaign(), role),
        )

    async def revoke_invite(self, code: str) -> Optional[Invite]:
        return await self._run_operation(
            OperationKind.UPDATE_INVITE,
            self.state.campaign_id,
            lambda: partial(invites.revoke_invite, self.store, self.actor(), self._require_campaign(), code),
        )

    async def redeem_invite(self, code: str) -> Optional[Redemption]:
        redemption = await self._run_operation(
            OperationKind.REDEEM_INVITE,
            "",
            lambda: partial(invites.redeem_invite, self.store, self._require_identity(), code),
        )
        if redemption is not None:
            self.select_campaign(redemption.campaign_id)
        return redemption
