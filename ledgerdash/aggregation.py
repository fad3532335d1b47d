# ledgerdash/aggregation.py
"""
Merge processor charges and manual transactions into per-period totals.

Events carry a non-negative amount plus a ``kind`` tag; the kind decides
whether the amount is money in, money out, or carried without effect.
Aggregation never filters by date: callers pass in the events they want
counted (see ``filter_window``).

Empty periods produce no bucket. A chart that needs a continuous axis has
to fill the holes itself.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from ledgerdash import ledger_config as lc
from ledgerdash.dates import from_unix, require_date, start_of_week
from ledgerdash.errors import InvalidArgument
from ledgerdash.occurrences import DateWindow


class EventKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    ROYALTY = "royalty"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"

    @classmethod
    def from_string(cls, value) -> "EventKind":
        if isinstance(value, cls):
            return value
        v = str(value or "").strip().lower()
        for kind in cls:
            if kind.value == v:
                return kind
        raise InvalidArgument(f"Unknown transaction type: {value!r}")

    @property
    def is_income(self) -> bool:
        return self.value in lc.INCOME_KINDS

    @property
    def is_expense(self) -> bool:
        return self.value in lc.EXPENSE_KINDS


class GroupBy(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def from_string(cls, value) -> "GroupBy":
        if isinstance(value, cls):
            return value
        v = str(value or "").strip().lower()
        for g in cls:
            if g.value == v:
                return g
        raise InvalidArgument(f"Unknown group_by: {value!r} (expected day, week or month)")


SOURCE_PROCESSOR = "processor"
SOURCE_MANUAL = "manual"


def _minor(value, name: str) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid {name}: {value!r}")


@dataclass(frozen=True)
class LedgerEvent:
    occurred_on: date
    amount_minor: int
    currency: str
    category: str
    kind: EventKind
    fee_minor: int = 0
    source: str = SOURCE_MANUAL
    description: str = ""

    def __post_init__(self):
        if self.amount_minor < 0:
            raise InvalidArgument(f"Amount must be non-negative, got {self.amount_minor}")
        if self.fee_minor < 0:
            raise InvalidArgument(f"Fee must be non-negative, got {self.fee_minor}")
        object.__setattr__(self, "occurred_on", require_date(self.occurred_on, "occurred_on"))
        object.__setattr__(self, "kind", EventKind.from_string(self.kind))
        object.__setattr__(self, "currency", (self.currency or lc.DEFAULT_CURRENCY).upper())

    @classmethod
    def from_charge(cls, charge: Dict[str, Any]) -> "LedgerEvent":
        """
        Processor charge JSON: ``created`` in unix seconds, ``amount`` in minor
        units, ``balance_transaction`` either expanded (has ``fee``) or a bare id.
        """
        bt = charge.get("balance_transaction")
        fee = _minor(bt.get("fee"), "fee") if isinstance(bt, dict) else 0
        return cls(
            occurred_on=from_unix(charge.get("created")),
            amount_minor=_minor(charge.get("amount"), "amount"),
            currency=charge.get("currency") or lc.DEFAULT_CURRENCY,
            category=lc.PROCESSOR_CATEGORY,
            kind=EventKind.INCOME,
            fee_minor=fee,
            source=SOURCE_PROCESSOR,
            description=charge.get("description") or "Payment",
        )

    @classmethod
    def from_manual(cls, row: Dict[str, Any]) -> "LedgerEvent":
        return cls(
            occurred_on=require_date(row.get("transaction_date"), "transaction_date"),
            amount_minor=_minor(row.get("amount"), "amount"),
            currency=row.get("currency") or lc.DEFAULT_CURRENCY,
            category=row.get("category") or "Uncategorized",
            kind=row.get("type") or "",
            source=SOURCE_MANUAL,
            description=row.get("description") or "",
        )


def settled_charges(charges: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [c for c in charges or [] if c.get("status") == lc.SETTLED_CHARGE_STATUS]


def collect_events(charges: Iterable[Dict[str, Any]], manual_rows: Iterable[Dict[str, Any]]) -> List[LedgerEvent]:
    events = [LedgerEvent.from_charge(c) for c in settled_charges(charges)]
    events.extend(LedgerEvent.from_manual(r) for r in manual_rows or [])
    return events


def filter_window(events: Iterable[LedgerEvent], window: DateWindow) -> List[LedgerEvent]:
    return [e for e in events if window.contains(e.occurred_on)]


# --------------------
# Date buckets
# --------------------
@dataclass
class AggregationBucket:
    key: str
    period_start: date
    label: str
    income: int = 0
    expense: int = 0
    fees: int = 0

    @property
    def net(self) -> int:
        return self.income - self.expense - self.fees

    def add(self, event: LedgerEvent) -> None:
        if event.kind.is_income:
            self.income += event.amount_minor
        elif event.kind.is_expense:
            self.expense += event.amount_minor
        self.fees += event.fee_minor

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["period_start"] = self.period_start.isoformat()
        d["net"] = self.net
        return d


def bucket_key(d: date, group_by) -> Tuple[str, date]:
    g = GroupBy.from_string(group_by)
    if g is GroupBy.DAY:
        return d.isoformat(), d
    if g is GroupBy.WEEK:
        start = start_of_week(d)
        return start.isoformat(), start
    start = d.replace(day=1)
    return f"{d:%Y-%m}", start


def bucket_label(period_start: date, group_by) -> str:
    g = GroupBy.from_string(group_by)
    if g is GroupBy.DAY:
        return f"{period_start:%b} {period_start.day}"
    if g is GroupBy.WEEK:
        return f"Week of {period_start:%b} {period_start.day}"
    return f"{period_start:%b %Y}"


def aggregate(events: Iterable[LedgerEvent], group_by) -> List[AggregationBucket]:
    g = GroupBy.from_string(group_by)
    buckets: Dict[str, AggregationBucket] = {}
    for ev in events:
        key, start = bucket_key(ev.occurred_on, g)
        b = buckets.get(key)
        if b is None:
            b = buckets[key] = AggregationBucket(key=key, period_start=start, label=bucket_label(start, g))
        b.add(ev)
    return sorted(buckets.values(), key=lambda b: b.period_start)


# --------------------
# Category buckets
# --------------------
@dataclass
class CategoryTotal:
    category: str
    total: int = 0
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def category_breakdown(events: Iterable[LedgerEvent]) -> List[CategoryTotal]:
    """
    One total per category label, largest first. Manual rows count whatever
    their kind; processor charges all land under the fixed processor label.
    """
    totals: Dict[str, CategoryTotal] = {}
    for ev in events:
        ct = totals.setdefault(ev.category, CategoryTotal(ev.category))
        ct.total += ev.amount_minor
        ct.count += 1
    return sorted(totals.values(), key=lambda c: (-c.total, c.category))


@dataclass(frozen=True)
class Summary:
    income: int
    expense: int
    fees: int
    successful_payments: int

    @property
    def net(self) -> int:
        return self.income - self.expense - self.fees

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["net"] = self.net
        return d


def summarize(events: Iterable[LedgerEvent]) -> Summary:
    total = AggregationBucket(key="all", period_start=date.min, label="All")
    payments = 0
    for ev in events:
        total.add(ev)
        if ev.source == SOURCE_PROCESSOR:
            payments += 1
    return Summary(income=total.income, expense=total.expense, fees=total.fees, successful_payments=payments)
