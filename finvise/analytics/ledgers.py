"""
Debt and gift-money aggregations.

Person names are compared case-insensitively; nothing else is normalised.
"""

from typing import Optional

from finvise.models.finance import (
    Debt,
    DebtType,
    GiftDirection,
    GiftRecord,
)
from finvise.models.summary import (
    ZERO,
    CounterpartyBalance,
    DebtStats,
    GiftStats,
)


def _same_person(a: str, b: str) -> bool:
    return a.lower() == b.lower()


# =============================================================================
# DEBTS
# =============================================================================

def debt_stats(debts: list[Debt]) -> DebtStats:
    """Outstanding receivable and payable totals, net = receivable - payable."""
    receivable = sum(
        (d.remaining_amount for d in debts if d.type == DebtType.RECEIVABLE), ZERO
    )
    payable = sum(
        (d.remaining_amount for d in debts if d.type == DebtType.PAYABLE), ZERO
    )
    return DebtStats(receivable=receivable, payable=payable, net=receivable - payable)


def filter_debts(debts: list[Debt], debt_type: Optional[DebtType] = None) -> list[Debt]:
    """Debts of one type, or all of them when debt_type is None."""
    if debt_type is None:
        return list(debts)
    return [d for d in debts if d.type == debt_type]


# =============================================================================
# GIFT MONEY
# =============================================================================

def gift_stats(gifts: list[GiftRecord]) -> GiftStats:
    """Given and received totals, net = received - given."""
    given = sum((g.amount for g in gifts if g.direction == GiftDirection.GIVEN), ZERO)
    received = sum(
        (g.amount for g in gifts if g.direction == GiftDirection.RECEIVED), ZERO
    )
    return GiftStats(given=given, received=received, net=received - given)


def filter_gifts(
    gifts: list[GiftRecord],
    direction: Optional[GiftDirection] = None,
) -> list[GiftRecord]:
    if direction is None:
        return list(gifts)
    return [g for g in gifts if g.direction == direction]


def counterparty_balance(gifts: list[GiftRecord], person_name: str) -> CounterpartyBalance:
    """
    What has been exchanged with one person across all records.

    A positive net means the user has received more than given.
    """
    matching = [g for g in gifts if _same_person(g.person_name, person_name)]
    stats = gift_stats(matching)
    return CounterpartyBalance(
        person_name=person_name,
        given=stats.given,
        received=stats.received,
        net=stats.net,
        record_count=len(matching),
    )


def counterparty_history(
    gifts: list[GiftRecord],
    gift: GiftRecord,
    limit: int = 5,
) -> list[GiftRecord]:
    """Other records with the same person, newest event first."""
    history = [
        g for g in gifts
        if g.id != gift.id and _same_person(g.person_name, gift.person_name)
    ]
    history.sort(key=lambda g: g.event_date, reverse=True)
    return history[:limit]
