from decimal import ROUND_HALF_UP, Decimal

from models import Frequency


# Average occurrences per month; not calendar-exact.
MONTHLY_MULTIPLIERS: dict[Frequency, Decimal] = {
    Frequency.weekly: Decimal("4.33"),
    Frequency.biweekly: Decimal("2.17"),
    Frequency.monthly: Decimal("1"),
    Frequency.annual: Decimal("1") / Decimal("12"),
}


def monthly_equivalent_cents(amount_cents: int, frequency: Frequency) -> int:
    multiplier = MONTHLY_MULTIPLIERS.get(Frequency(frequency), Decimal("1"))
    monthly = (Decimal(amount_cents) * multiplier).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return int(monthly)
