import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class SpecStatus(str, Enum):
    """Canonical procurement status of a spec item."""
    SELECTED            = "SELECTED"
    RFQ_SENT            = "RFQ_SENT"
    QUOTE_RECEIVED      = "QUOTE_RECEIVED"
    QUOTE_APPROVED      = "QUOTE_APPROVED"
    INVOICED_TO_CLIENT  = "INVOICED_TO_CLIENT"
    CLIENT_PAID         = "CLIENT_PAID"
    ORDERED             = "ORDERED"
    SHIPPED             = "SHIPPED"
    DELIVERED           = "DELIVERED"
    INSTALLED           = "INSTALLED"
    CLOSED              = "CLOSED"
    DRAFT               = "DRAFT"
    HIDDEN              = "HIDDEN"
    CLIENT_TO_ORDER     = "CLIENT_TO_ORDER"
    CONTRACTOR_TO_ORDER = "CONTRACTOR_TO_ORDER"
    ISSUE               = "ISSUE"
    ARCHIVED            = "ARCHIVED"


# Post-ordering statuses an item may only enter once the client has approved it.
REQUIRES_APPROVAL = frozenset({
    SpecStatus.ORDERED,
    SpecStatus.SHIPPED,
    SpecStatus.DELIVERED,
    SpecStatus.INSTALLED,
    SpecStatus.CLOSED,
})

# Forward order of the procurement pipeline, used by event-driven sync.
PROCUREMENT_ORDER = (
    SpecStatus.DRAFT,
    SpecStatus.SELECTED,
    SpecStatus.RFQ_SENT,
    SpecStatus.QUOTE_RECEIVED,
    SpecStatus.QUOTE_APPROVED,
    SpecStatus.INVOICED_TO_CLIENT,
    SpecStatus.CLIENT_PAID,
    SpecStatus.ORDERED,
    SpecStatus.SHIPPED,
    SpecStatus.DELIVERED,
    SpecStatus.INSTALLED,
    SpecStatus.CLOSED,
)

# Set by hand; automatic sync never moves an item out of these.
MANUAL_STATUSES = frozenset({
    SpecStatus.HIDDEN,
    SpecStatus.CLIENT_TO_ORDER,
    SpecStatus.CONTRACTOR_TO_ORDER,
    SpecStatus.ISSUE,
    SpecStatus.ARCHIVED,
})

# Historically stored status strings -> canonical status.
LEGACY_STATUS_ALIASES: dict[str, SpecStatus] = {
    "RECEIVED":        SpecStatus.DELIVERED,
    "QUOTING":         SpecStatus.RFQ_SENT,
    "BUDGET_SENT":     SpecStatus.QUOTE_RECEIVED,
    "BETTER_PRICE":    SpecStatus.QUOTE_RECEIVED,
    "CLIENT_REVIEW":   SpecStatus.QUOTE_RECEIVED,
    "BUDGET_APPROVED": SpecStatus.QUOTE_APPROVED,
    "APPROVED":        SpecStatus.QUOTE_APPROVED,
    "NEED_TO_ORDER":   SpecStatus.QUOTE_APPROVED,
    "PAYMENT_DUE":     SpecStatus.INVOICED_TO_CLIENT,
    "IN_PRODUCTION":   SpecStatus.ORDERED,
    "IN_TRANSIT":      SpecStatus.SHIPPED,
    "COMPLETED":       SpecStatus.CLOSED,
    "OPTION":          SpecStatus.SELECTED,
    "NEED_SAMPLE":     SpecStatus.SELECTED,
    "INTERNAL_REVIEW": SpecStatus.DRAFT,
    "NEEDS_SPEC":      SpecStatus.DRAFT,
    "RESUBMIT":        SpecStatus.ISSUE,
    "REJECTED":        SpecStatus.ISSUE,
}


def normalise_status(raw: Optional[str]) -> SpecStatus:
    """
    Map a stored status string to its canonical SpecStatus.

    Canonical values pass through, legacy aliases are translated, and
    anything unrecognised (or empty) becomes DRAFT.
    """
    if not raw:
        return SpecStatus.DRAFT
    key = raw.strip().upper()
    try:
        return SpecStatus(key)
    except ValueError:
        pass
    if key in LEGACY_STATUS_ALIASES:
        return LEGACY_STATUS_ALIASES[key]
    logger.warning("Unknown stored status %r — treating as DRAFT", raw)
    return SpecStatus.DRAFT


def requires_approval(status: SpecStatus) -> bool:
    return status in REQUIRES_APPROVAL
