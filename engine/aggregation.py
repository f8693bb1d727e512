"""
Read-side financial rollups over a filtered set of spec items.

  Totals     Trade and RRP subtotals bucketed by effective currency; buckets
             are never summed across currencies.
  Discount   (RRP - Trade) / RRP * 100 over the primary-currency bucket only.
  Counters   Items not yet client-approved and items without an RRP, both
             ignoring statuses configured as resolved (e.g. contractor to order).

Nothing here mutates items.
"""
import logging
from collections import defaultdict
from typing import Iterable, Optional

from config import Config
from models.result import AggregateFilter, Aggregates
from models.spec_item import SpecItem
from models.status import SpecStatus
from .pricing import PricingEngine, round2

logger = logging.getLogger(__name__)


class AggregationEngine:

    def __init__(self, config: Optional[Config] = None, pricing: Optional[PricingEngine] = None):
        self.config = config or Config()
        self.pricing = pricing or PricingEngine(self.config)

    def matches(self, item: SpecItem, flt: AggregateFilter) -> bool:
        if not flt.include_archived and item.status == SpecStatus.ARCHIVED:
            return False
        if flt.room_id and item.room_id != flt.room_id:
            return False
        if flt.section_id and item.section_id != flt.section_id:
            return False
        if flt.statuses and item.status not in flt.statuses:
            return False
        if flt.currency:
            wanted = flt.currency.upper()
            if wanted not in (self.pricing.trade_currency(item), self.pricing.rrp_currency(item)):
                return False
        if flt.search:
            query = flt.search.strip().lower()
            haystack = (item.name, item.sku, item.model, item.doc_code, item.brand)
            if query and not any(query in (v or "").lower() for v in haystack):
                return False
        return True

    def compute(
        self,
        items: Iterable[SpecItem],
        flt: Optional[AggregateFilter] = None,
    ) -> Aggregates:
        flt = flt or AggregateFilter()
        resolved = {s.upper() for s in self.config.resolved_statuses}
        primary = self.config.primary_currency.upper()

        trade: dict[str, float] = defaultdict(float)
        rrp: dict[str, float] = defaultdict(float)
        not_approved = 0
        missing_rrp = 0
        selected: list[str] = []

        for item in items:
            if not self.matches(item, flt):
                continue
            selected.append(item.id)

            trade_total = self.pricing.trade_total(item)
            if trade_total:
                trade[self.pricing.trade_currency(item)] += trade_total
            line_total = self.pricing.line_total(item)
            if line_total:
                rrp[self.pricing.rrp_currency(item)] += line_total

            if item.status.value in resolved:
                continue
            if not item.client_approved:
                not_approved += 1
            if not item.rrp or item.rrp <= 0:
                missing_rrp += 1

        rrp_primary = rrp.get(primary, 0.0)
        trade_primary = trade.get(primary, 0.0)
        average_discount = None
        if rrp_primary > 0:
            average_discount = round2((rrp_primary - trade_primary) / rrp_primary * 100)

        result = Aggregates(
            item_count=len(selected),
            trade_totals={c: round2(v) for c, v in trade.items()},
            rrp_totals={c: round2(v) for c, v in rrp.items()},
            primary_currency=primary,
            average_discount_percent=average_discount,
            not_approved_count=not_approved,
            missing_rrp_count=missing_rrp,
            item_ids=selected,
        )
        logger.debug(
            "Aggregated %d item(s): rrp=%s trade=%s",
            result.item_count, result.rrp_totals, result.trade_totals,
        )
        return result
