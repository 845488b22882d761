from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Hashable, Optional, TypeVar


UNCATEGORIZED_ID = 0
UNCATEGORIZED_NAME = "Uncategorized"
UNCATEGORIZED_EMOJI = "💰"

T = TypeVar("T")


def percent_of(amount: float, base: float) -> float:
    if not base:
        return 0.0
    return amount / base * 100


def ratio(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator


@dataclass
class CategoryBreakdown(Generic[T]):
    category_id: Hashable
    category_name: str
    emoji: str
    amount_cents: int = 0
    percentage: float = 0.0
    transaction_count: int = 0
    transactions: list[T] = field(default_factory=list)


class CategoryAggregator(Generic[T]):
    """Folds monetary records into per-category totals.

    Percentages are computed against a caller-supplied base, which defaults to
    the sum of everything folded into this aggregator.
    """

    def __init__(self, keep_items: bool = True) -> None:
        self.keep_items = keep_items
        self._groups: dict[Hashable, CategoryBreakdown[T]] = {}
        self.total_cents = 0

    def add(
        self,
        category_id: Optional[Hashable],
        category_name: Optional[str],
        emoji: Optional[str],
        amount_cents: int,
        item: Optional[T] = None,
    ) -> None:
        if category_id is None:
            category_id = UNCATEGORIZED_ID
            category_name = UNCATEGORIZED_NAME
            emoji = UNCATEGORIZED_EMOJI

        group = self._groups.get(category_id)
        if group is None:
            group = CategoryBreakdown(
                category_id=category_id,
                category_name=category_name or UNCATEGORIZED_NAME,
                emoji=emoji or UNCATEGORIZED_EMOJI,
            )
            self._groups[category_id] = group

        group.amount_cents += amount_cents
        group.transaction_count += 1
        self.total_cents += amount_cents
        if self.keep_items and item is not None:
            group.transactions.append(item)

    def breakdown(
        self, base_cents: Optional[int] = None, *, sort: bool = True
    ) -> list[CategoryBreakdown[T]]:
        base = self.total_cents if base_cents is None else base_cents
        groups = list(self._groups.values())
        for group in groups:
            group.percentage = percent_of(group.amount_cents, base)
        if sort:
            groups.sort(key=lambda g: g.amount_cents, reverse=True)
        return groups
