from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, Optional, Sequence

from .dataset import StudioDataset
from .dates import compute_time_window, localize_now
from .models import FinancialSummary, TransactionFilters, TransactionRecord

_ONE_MICROSECOND = timedelta(microseconds=1)

INCOME = "income"
EXPENSE = "expense"


def _empty_split() -> Dict[str, float]:
    return {INCOME: 0.0, EXPENSE: 0.0}


def _localized_filters(filters: TransactionFilters, reference: datetime) -> TransactionFilters:
    tz = reference.tzinfo
    return replace(
        filters,
        start=filters.start.replace(tzinfo=tz) if filters.start and filters.start.tzinfo is None else filters.start,
        end=filters.end.replace(tzinfo=tz) if filters.end and filters.end.tzinfo is None else filters.end,
    )


def summarize_transactions(
    transactions: Sequence[TransactionRecord],
    filters: Optional[TransactionFilters] = None,
    now: Optional[datetime] = None,
) -> FinancialSummary:
    """
    Income/expense totals, per-category and per-month splits for the filtered set.

    Transactions of any other type are counted in ``transaction_count`` but
    contribute to no sum.
    """

    reference = localize_now(now or datetime.now())
    dataset = StudioDataset(transactions=transactions)
    if filters is not None:
        filters = _localized_filters(filters, reference)

    total_income = 0.0
    total_expenses = 0.0
    pending = 0.0
    count = income_count = expense_count = 0
    categories: Dict[str, Dict[str, float]] = defaultdict(_empty_split)
    months: Dict[str, Dict[str, float]] = defaultdict(_empty_split)

    for transaction, effective in dataset.iter_transactions(filters, reference):
        count += 1
        if transaction.type == INCOME:
            total_income += transaction.amount
            income_count += 1
            if transaction.status == "pending":
                pending += transaction.amount
        elif transaction.type == EXPENSE:
            total_expenses += transaction.amount
            expense_count += 1
        else:
            continue

        categories[transaction.category][transaction.type] += transaction.amount
        months[effective.strftime("%Y-%m")][transaction.type] += transaction.amount

    return FinancialSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        net_profit=total_income - total_expenses,
        transaction_count=count,
        income_transactions=income_count,
        expense_transactions=expense_count,
        pending_payments=pending,
        category_breakdown=dict(categories),
        monthly_breakdown=dict(sorted(months.items())),
    )


def month_filters(now: datetime) -> TransactionFilters:
    window = compute_time_window(now)
    # Inclusive end; the last representable instant before next month.
    return TransactionFilters(start=window.month_start, end=window.month_end - _ONE_MICROSECOND)


def monthly_net_income(transactions: Sequence[TransactionRecord], now: datetime) -> float:
    """Net of income and expenses dated in the calendar month of ``now``."""

    return summarize_transactions(transactions, month_filters(now), now).net_profit
