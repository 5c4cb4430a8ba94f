"""Commission Service - splits an order between vendors, platform and dispatch."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from src.models.order import OrderLine
from src.utils.amount import ZERO, round_money, to_decimal


@dataclass
class StoreCommission:
    """Aggregated share of one vendor (store owner)."""

    vendor_id: int
    store_amount: Decimal = ZERO
    platform_amount: Decimal = ZERO


@dataclass
class CommissionBreakdown:
    """Result of splitting an order.

    platform_rate is the unweighted average of per-line markup percentages.
    It is reported for display only and must not be used to rebuild amounts.
    """

    stores: dict[int, StoreCommission] = field(default_factory=dict)
    vendor_amount: Decimal = ZERO
    platform_amount: Decimal = ZERO
    dispatch_amount: Decimal = ZERO
    dispatch_agent_id: int | None = None
    platform_rate: Decimal = ZERO

    @property
    def vendor_shares(self) -> dict[int, Decimal]:
        """Vendor id -> amount owed to that vendor (non-zero only)."""
        return {
            vendor_id: store.store_amount
            for vendor_id, store in self.stores.items()
            if store.store_amount > 0
        }


class CommissionCalculator:
    """Pure commission calculation over order lines."""

    @staticmethod
    def compute(
        lines: Iterable[OrderLine],
        delivery_fee: Decimal | int | str = ZERO,
        delivery_agent_id: int | None = None,
    ) -> CommissionBreakdown:
        """Split order lines into vendor and platform shares.

        Per line: store share = store_price * quantity, platform share =
        listed_price * quantity - store share. Amounts are summed unrounded
        and rounded once per aggregate.

        The delivery fee becomes the dispatch amount only when an agent
        fulfils the order and the fee is non-zero.

        Example:
            one line store 9000, listed 9675, qty 1, delivery 1075 ->
            vendor 9000, platform 675, dispatch 1075, platform_rate 7.5

        Args:
            lines: Order lines (vendor_id, store_price, listed_price, quantity)
            delivery_fee: Fee owed to the delivery agent
            delivery_agent_id: Fulfilling agent, if any

        Returns:
            CommissionBreakdown (all zero for an empty order)
        """
        raw_store: dict[int, Decimal] = {}
        raw_platform: dict[int, Decimal] = {}
        line_rates: list[Decimal] = []

        for line in lines:
            quantity = Decimal(line.quantity)
            store_price = to_decimal(line.store_price)
            listed_price = to_decimal(line.listed_price)

            store_total = store_price * quantity
            platform_total = listed_price * quantity - store_total

            raw_store[line.vendor_id] = raw_store.get(line.vendor_id, ZERO) + store_total
            raw_platform[line.vendor_id] = raw_platform.get(line.vendor_id, ZERO) + platform_total

            if store_price > 0:
                line_rates.append((listed_price - store_price) / store_price * Decimal("100"))

        breakdown = CommissionBreakdown()
        for vendor_id, store_total in raw_store.items():
            breakdown.stores[vendor_id] = StoreCommission(
                vendor_id=vendor_id,
                store_amount=round_money(store_total),
                platform_amount=round_money(raw_platform[vendor_id]),
            )

        breakdown.vendor_amount = round_money(sum(raw_store.values(), ZERO))
        breakdown.platform_amount = round_money(sum(raw_platform.values(), ZERO))

        # Keep the per-vendor split consistent with the rounded total
        drift = breakdown.vendor_amount - sum(
            (s.store_amount for s in breakdown.stores.values()), ZERO
        )
        if drift and breakdown.stores:
            largest = max(breakdown.stores.values(), key=lambda s: s.store_amount)
            largest.store_amount += drift

        if line_rates:
            breakdown.platform_rate = round_money(sum(line_rates, ZERO) / len(line_rates))

        fee = to_decimal(delivery_fee)
        if delivery_agent_id is not None and fee > 0:
            breakdown.dispatch_amount = round_money(fee)
            breakdown.dispatch_agent_id = delivery_agent_id

        return breakdown
