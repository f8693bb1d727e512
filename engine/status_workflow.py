"""
Status state machine for spec items.

Rules:
  Approval gating   ORDERED / SHIPPED / DELIVERED / INSTALLED / CLOSED need
                    client_approved=True; requesting them without approval
                    raises ApprovalRequiredError and changes nothing.
  Auto-revert       Withdrawing approval from an item in a gated status moves
                    it to the configured fallback status in the same patch.
  Archive           ARCHIVED always comes with an empty link set.
  Event sync        Procurement events only move an item forward, never out
                    of a manual status and never past the approval gate.

Every mutating method validates first, then updates the item in place and
returns the patch (field -> new value) the caller must persist as one update.
"""
import logging
from typing import Optional, Union

from config import Config
from models.spec_item import SpecItem
from models.result import StatusSyncResult
from models.status import (
    MANUAL_STATUSES,
    PROCUREMENT_ORDER,
    SpecStatus,
    normalise_status,
    requires_approval,
)
from .errors import ApprovalRequiredError

logger = logging.getLogger(__name__)

# Procurement event -> status it implies
STATUS_TRIGGERS: dict[str, SpecStatus] = {
    "rfq_sent":              SpecStatus.RFQ_SENT,
    "quote_received":        SpecStatus.QUOTE_RECEIVED,
    "quote_accepted":        SpecStatus.QUOTE_APPROVED,
    "added_to_client_quote": SpecStatus.QUOTE_APPROVED,
    "invoice_sent":          SpecStatus.INVOICED_TO_CLIENT,
    "payment_received":      SpecStatus.CLIENT_PAID,
    "order_created":         SpecStatus.ORDERED,
    "order_shipped":         SpecStatus.SHIPPED,
    "order_delivered":       SpecStatus.DELIVERED,
    "installed":             SpecStatus.INSTALLED,
    "completed":             SpecStatus.CLOSED,
}


def _coerce(status: Union[SpecStatus, str]) -> SpecStatus:
    if isinstance(status, SpecStatus):
        return status
    try:
        return SpecStatus(status.strip().upper())
    except ValueError:
        raise ValueError(
            f"Invalid status {status!r}. Must be one of {[s.value for s in SpecStatus]}"
        ) from None


def _is_ahead(a: SpecStatus, b: SpecStatus) -> bool:
    if a not in PROCUREMENT_ORDER or b not in PROCUREMENT_ORDER:
        return False
    return PROCUREMENT_ORDER.index(a) > PROCUREMENT_ORDER.index(b)


class StatusWorkflow:

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.fallback_status = _coerce(self.config.approval_fallback_status)
        if requires_approval(self.fallback_status):
            raise ValueError(
                f"approval_fallback_status {self.fallback_status.value} must not require approval"
            )

    @staticmethod
    def display_status(raw: Optional[str]) -> SpecStatus:
        """Canonical status for any stored string, legacy aliases included."""
        return normalise_status(raw)

    def check_new(self, item: SpecItem) -> None:
        """
        Gate the initial status of an item that is about to be created.

        A requires-approval status without approval raises; an archived item
        starts with every link cleared.
        """
        if requires_approval(item.status) and not item.client_approved:
            raise ApprovalRequiredError(item.id, item.status.value)
        if item.status == SpecStatus.ARCHIVED:
            self.archive(item)

    def reconcile_loaded(self, item: SpecItem) -> bool:
        """
        Pull a freshly loaded item back to the fallback status when it sits in
        a requires-approval status without approval (legacy aliases such as
        RECEIVED map onto gated statuses).  The stored value stays in
        raw_status until a new status is written.  Returns True if changed.
        """
        if not requires_approval(item.status) or item.client_approved:
            return False
        logger.warning(
            "Stored status %s of %s needs client approval; loading as %s",
            item.raw_status or item.status.value, item.id, self.fallback_status.value,
        )
        item.raw_status = item.raw_status or item.status.value
        item.status = self.fallback_status
        return True

    def set_status(self, item: SpecItem, new_status: Union[SpecStatus, str]) -> dict:
        status = _coerce(new_status)
        if requires_approval(status) and not item.client_approved:
            logger.info("Rejected status %s for %s: not client approved", status.value, item.id)
            raise ApprovalRequiredError(item.id, status.value)

        if status == SpecStatus.ARCHIVED:
            return self.archive(item)

        previous = item.status
        item.status = status
        item.raw_status = None
        logger.info("Status %s: %s -> %s", item.id, previous.value, status.value)
        return {"status": status}

    def set_approval(self, item: SpecItem, approved: bool) -> dict:
        patch: dict = {"client_approved": bool(approved)}
        if not approved and requires_approval(item.status):
            patch["status"] = self.fallback_status
            logger.info(
                "Approval withdrawn for %s — reverting %s -> %s",
                item.id, item.status.value, self.fallback_status.value,
            )
        item.client_approved = bool(approved)
        if "status" in patch:
            item.status = patch["status"]
            item.raw_status = None
        return patch

    def archive(self, item: SpecItem) -> dict:
        """
        Retire an item: status ARCHIVED and every link cleared.

        Safe to repeat; the empty-link state is re-asserted each time.
        """
        if item.status != SpecStatus.ARCHIVED:
            logger.info("Archiving %s (%d link(s) cleared)", item.id, len(item.requirement_ids))
        item.status = SpecStatus.ARCHIVED
        item.raw_status = None
        item.links = []
        item.ffe_requirement_id = None
        return {"status": SpecStatus.ARCHIVED, "links": [], "ffe_requirement_id": None}

    def sync_from_event(self, item: SpecItem, trigger: str) -> tuple[StatusSyncResult, dict]:
        """
        Move an item forward in response to a procurement event.

        Returns the result and the patch to persist (empty when unchanged).
        """
        current = item.status
        target = STATUS_TRIGGERS.get(trigger)

        def _skip(reason: str, new: Optional[SpecStatus] = None):
            logger.debug("Status sync skipped for %s: %s", item.id, reason)
            result = StatusSyncResult(
                item_id=item.id, previous_status=current,
                new_status=new or current, changed=False, reason=reason,
            )
            return result, {}

        if target is None:
            return _skip(f"Unknown trigger: {trigger}")
        if current in MANUAL_STATUSES:
            return _skip(f"Current status {current.value} is a manual status", target)
        if not _is_ahead(target, current):
            return _skip(
                f"New status {target.value} is not ahead of current status {current.value}", target
            )
        if requires_approval(target) and not item.client_approved:
            return _skip(f"Status {target.value} requires client approval", target)

        patch = self.set_status(item, target)
        return StatusSyncResult(
            item_id=item.id, previous_status=current, new_status=target, changed=True,
        ), patch
