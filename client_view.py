# client_view.py
"""Local, derived view of a user's expenses.

Records are the wire payloads returned by ``GET /api/expenses`` (camelCase
dicts). The view starts from one full fetch and is then kept current purely
from push events; nothing here is ever sent back to the server.
"""
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Optional

from dateutil import parser as date_parser

from notifier import EXPENSE_CREATED, EXPENSE_DELETED, EXPENSE_UPDATED

ALL_CATEGORIES = "all"


@dataclass(frozen=True)
class FilterCriteria:
    category: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None


def record_date(record) -> date:
    value = record["date"]
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date_parser.isoparse(value).date()


def matches(record, criteria: FilterCriteria) -> bool:
    if criteria.category not in (None, ALL_CATEGORIES) and record.get("category") != criteria.category:
        return False
    if criteria.start_date is not None or criteria.end_date is not None:
        day = record_date(record)
        if criteria.start_date is not None and day < criteria.start_date:
            return False
        if criteria.end_date is not None and day > criteria.end_date:
            return False
    amount = float(record["amount"])
    if criteria.min_amount is not None and amount < criteria.min_amount:
        return False
    if criteria.max_amount is not None and amount > criteria.max_amount:
        return False
    return True


def apply_filters(records, criteria: FilterCriteria) -> list:
    return [record for record in records if matches(record, criteria)]


def reconcile(records, event: str, data) -> list:
    """Return a new record list with one push event applied."""
    if event == EXPENSE_CREATED:
        return [data] + [record for record in records if record["id"] != data["id"]]
    if event == EXPENSE_UPDATED:
        return [data if record["id"] == data["id"] else record for record in records]
    if event == EXPENSE_DELETED:
        return [record for record in records if record["id"] != data]
    return list(records)


def category_options(records) -> list:
    """``"all"`` followed by each category in order of first appearance."""
    seen = []
    for record in records:
        if record["category"] not in seen:
            seen.append(record["category"])
    return [ALL_CATEGORIES] + seen


def total_amount(records) -> float:
    return sum(float(record["amount"]) for record in records)


def month_total(records, today: date) -> float:
    """Spending in the calendar month (and year) containing ``today``."""
    return sum(
        float(record["amount"])
        for record in records
        if record_date(record).replace(day=1) == today.replace(day=1)
    )


def daily_totals(records, today: date, days: int = 7) -> list:
    """Spending per day for the ``days`` days ending on ``today``, oldest first."""
    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    totals = dict.fromkeys(window, 0.0)
    for record in records:
        day = record_date(record)
        if day in totals:
            totals[day] += float(record["amount"])
    return [(day, totals[day]) for day in window]


class ClientView:
    """Holds the fetched records and keeps ``displayed`` in sync with filters."""

    def __init__(self, criteria: FilterCriteria = None):
        self._records = []
        self._criteria = criteria or FilterCriteria()
        self.displayed = []

    @property
    def records(self) -> list:
        return list(self._records)

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    def load(self, records):
        self._records = list(records)
        self._refresh()

    def handle_event(self, message):
        self._records = reconcile(self._records, message.get("event"), message.get("data"))
        self._refresh()

    def set_criteria(self, **changes):
        self._criteria = replace(self._criteria, **changes)
        self._refresh()

    def categories(self) -> list:
        return category_options(self._records)

    def total(self) -> float:
        return total_amount(self._records)

    def month_total(self, today: date) -> float:
        return month_total(self._records, today)

    def trend(self, today: date, days: int = 7) -> list:
        return daily_totals(self.displayed, today, days)

    def _refresh(self):
        self.displayed = apply_filters(self._records, self._criteria)
