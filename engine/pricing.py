"""
Per-item multi-currency pricing.

Each item stores a trade price and an RRP, each with its own currency.  The
effective currency of either value is the linked supplier's currency when a
known supplier is linked, else the stored currency, else the default.

Derivations fire only from the edit that triggers them and go one hop:

  trade_price             -> nothing else changes
  markup_percent          -> rrp = round2(trade_price * (1 + markup/100))
  trade_discount_percent  -> trade_price = round2(rrp * (1 - discount/100))
  rrp                     -> explicit override, nothing else changes

Line totals count an item at rrp, or at trade_price when rrp is missing
(zero markup assumed), plus any marked-up sub-components.
"""
import logging
import re
from typing import Literal, Optional, get_args

from config import Config
from models.spec_item import SpecItem
from .errors import InvalidPriceError
from .supplier_directory import SupplierDirectory

logger = logging.getLogger(__name__)

PriceField = Literal["trade_price", "rrp", "markup_percent", "trade_discount_percent"]
CurrencyField = Literal["trade_price_currency", "rrp_currency"]

PRICE_FIELDS = frozenset(get_args(PriceField))
CURRENCY_FIELDS = frozenset(get_args(CurrencyField))

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")

# A larger discount would derive a negative trade price
MAX_DISCOUNT_PERCENT = 100.0


def round2(value: float) -> float:
    return round(value, 2)


class PricingEngine:

    def __init__(
        self,
        config: Optional[Config] = None,
        suppliers: Optional[SupplierDirectory] = None,
    ):
        self.config = config or Config()
        self.suppliers = suppliers or SupplierDirectory()

    # ------------------------------------------------------------------
    # Currency
    # ------------------------------------------------------------------

    def _effective(self, item: SpecItem, stored: Optional[str]) -> str:
        return (
            self.suppliers.currency_for(item.supplier_id)
            or stored
            or self.config.default_currency
        )

    def trade_currency(self, item: SpecItem) -> str:
        return self._effective(item, item.trade_price_currency)

    def rrp_currency(self, item: SpecItem) -> str:
        return self._effective(item, item.rrp_currency)

    def set_currency(self, item: SpecItem, field: str, code: str) -> dict:
        if field not in CURRENCY_FIELDS:
            raise InvalidPriceError(
                f"Invalid currency field {field!r}. Must be one of {sorted(CURRENCY_FIELDS)}"
            )
        normalised = (code or "").strip().upper()
        if not _CURRENCY_RE.match(normalised):
            raise InvalidPriceError(f"Invalid currency code {code!r}")
        setattr(item, field, normalised)
        return {field: normalised}

    # ------------------------------------------------------------------
    # Price edits
    # ------------------------------------------------------------------

    def set_price(self, item: SpecItem, field: str, value: Optional[float]) -> dict:
        """
        Apply one price edit plus its single derived write, if any.

        Returns the patch of every field written; callers persist it as one
        update.  Passing None clears the field and derives nothing.
        """
        if field not in PRICE_FIELDS:
            raise InvalidPriceError(
                f"Invalid price field {field!r}. Must be one of {sorted(PRICE_FIELDS)}"
            )
        if value is not None:
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise InvalidPriceError(f"{field} must be a number, got {value!r}") from None
            if value < 0:
                raise InvalidPriceError(f"{field} cannot be negative ({value})")
            if field == "trade_discount_percent" and value > MAX_DISCOUNT_PERCENT:
                raise InvalidPriceError(
                    f"{field} cannot exceed {MAX_DISCOUNT_PERCENT:g} ({value})"
                )

        patch: dict = {field: value}

        if value is not None:
            if field == "markup_percent" and item.trade_price is not None:
                patch["rrp"] = round2(item.trade_price * (1 + value / 100))
            elif field == "trade_discount_percent" and item.rrp is not None:
                patch["trade_price"] = round2(item.rrp * (1 - value / 100))

        for key, val in patch.items():
            setattr(item, key, val)
        if len(patch) > 1:
            logger.debug("Price derivation on %s: %s", item.id, patch)
        return patch

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    @staticmethod
    def unit_price(item: SpecItem) -> float:
        if item.rrp is not None:
            return item.rrp
        if item.trade_price is not None:
            return item.trade_price
        return 0.0

    def line_total(self, item: SpecItem) -> float:
        """Client-facing total: (rrp ?? trade_price ?? 0) * quantity plus marked-up components."""
        total = self.unit_price(item) * item.quantity
        markup = (item.markup_percent or 0) / 100
        for component in item.components:
            total += component.price * (1 + markup) * component.quantity
        return round2(total)

    def trade_total(self, item: SpecItem) -> float:
        total = (item.trade_price or 0) * item.quantity
        for component in item.components:
            total += component.price * component.quantity
        return round2(total)
