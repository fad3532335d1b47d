# ledgerdash/occurrences.py
"""
Recurring income/expense schedules projected over a date window.

A rule fires on ``start_date`` and then every frequency step after it, up to
and including ``end_date`` when one is set. The n-th firing is always computed
from ``start_date`` itself, never from the previous firing, so the sequence
can be restarted at any index and monthly rules do not drift after a short
month: Jan 31 -> Feb 28 -> Mar 31 -> Apr 30.

Month overflow clamps to the last valid day (``relativedelta`` semantics).
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from dateutil.relativedelta import relativedelta

from ledgerdash import ledger_config as lc
from ledgerdash.dates import months_between, parse_any_date, require_date
from ledgerdash.errors import InvalidArgument, InvalidRule


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def from_string(cls, value) -> "Frequency":
        if isinstance(value, cls):
            return value
        v = str(value or "").strip().lower()
        for freq in cls:
            if freq.value == v:
                return freq
        raise InvalidArgument(f"Unknown frequency: {value!r}")

    @property
    def label(self) -> str:
        return lc.FREQUENCY_LABELS[self.value]


class RecurringKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"

    @classmethod
    def from_string(cls, value) -> "RecurringKind":
        if isinstance(value, cls):
            return value
        v = str(value or "").strip().lower()
        for kind in cls:
            if kind.value == v:
                return kind
        raise InvalidArgument(f"Unknown recurring kind: {value!r}")


# fixed-length steps can be counted with integer division
_STEP_DAYS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
}


@dataclass(frozen=True)
class DateWindow:
    """Inclusive on both ends."""

    start: date
    end: date

    def __post_init__(self):
        start = require_date(self.start, "window start")
        end = require_date(self.end, "window end")
        if start > end:
            raise InvalidArgument(f"Window start {start} is after end {end}")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def parse(cls, start, end) -> "DateWindow":
        return cls(start, end)

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


@dataclass(frozen=True)
class RecurringRule:
    name: str
    amount: int
    kind: RecurringKind
    frequency: Frequency
    start_date: date
    end_date: Optional[date] = None
    active: bool = True
    id: Optional[str] = None
    category: str = ""
    currency: str = lc.DEFAULT_CURRENCY

    def __post_init__(self):
        try:
            freq = Frequency.from_string(self.frequency)
            kind = RecurringKind.from_string(self.kind)
        except InvalidArgument as e:
            raise InvalidRule(e.message, entity_id=self.id)

        start = parse_any_date(self.start_date)
        if start is None:
            raise InvalidRule(f"Rule {self.name!r} has no valid start date", entity_id=self.id)
        end = None
        if self.end_date not in (None, ""):
            end = parse_any_date(self.end_date)
            if end is None:
                raise InvalidRule(f"Rule {self.name!r} has an invalid end date", entity_id=self.id)
            if end < start:
                raise InvalidRule(
                    f"Rule {self.name!r} ends ({end}) before it starts ({start})",
                    entity_id=self.id,
                )

        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise InvalidRule(f"Rule {self.name!r} amount must be integer minor units", entity_id=self.id)
        if self.amount < 0:
            raise InvalidRule(f"Rule {self.name!r} amount must be non-negative", entity_id=self.id)

        object.__setattr__(self, "frequency", freq)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "start_date", start)
        object.__setattr__(self, "end_date", end)
        object.__setattr__(self, "currency", (self.currency or lc.DEFAULT_CURRENCY).upper())

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> "RecurringRule":
        """Build a rule from a stored ``recurring_transactions`` row."""
        raw_amount = row.get("amount", 0)
        try:
            amount = int(round(float(raw_amount if raw_amount is not None else 0)))
        except (TypeError, ValueError):
            raise InvalidRule(f"Invalid amount: {raw_amount!r}", entity_id=row.get("id"))
        return cls(
            name=row.get("name") or "",
            amount=amount,
            kind=row.get("type") or row.get("kind") or "",
            frequency=row.get("frequency") or "",
            start_date=row.get("start_date"),
            end_date=row.get("end_date"),
            active=bool(row.get("is_active", True)),
            id=row.get("id"),
            category=row.get("category") or "",
            currency=row.get("currency") or lc.DEFAULT_CURRENCY,
        )


# --------------------
# Occurrence sequence
# --------------------
def occurrence_date(rule: RecurringRule, n: int) -> date:
    """The n-th scheduled date (n = 0 is the start date), ignoring end_date."""
    if n < 0:
        raise InvalidArgument("Occurrence index must be non-negative")
    step = _STEP_DAYS.get(rule.frequency)
    if step:
        return rule.start_date + timedelta(days=step * n)
    if rule.frequency is Frequency.MONTHLY:
        return rule.start_date + relativedelta(months=n)
    return rule.start_date + relativedelta(years=n)


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


def _first_index_on_or_after(rule: RecurringRule, d: date) -> int:
    """
    Smallest index whose date could be >= d. Exact for fixed steps; for
    calendar steps it lands one period early, callers skip past it.
    """
    if d <= rule.start_date:
        return 0
    step = _STEP_DAYS.get(rule.frequency)
    if step:
        return _ceil_div((d - rule.start_date).days, step)
    if rule.frequency is Frequency.MONTHLY:
        return max(0, months_between(rule.start_date, d) - 1)
    return max(0, d.year - rule.start_date.year - 1)


def _dates_from(rule: RecurringRule, n: int) -> Iterator[date]:
    while True:
        yield occurrence_date(rule, n)
        n += 1


def iter_occurrences(rule: RecurringRule, until: Optional[date] = None) -> Iterator[date]:
    """
    Lazily yield scheduled dates from the start date, stopping after
    ``end_date`` or ``until`` (whichever is earlier). With neither set the
    generator never ends; consume it with a bound.
    """
    bound = rule.end_date
    if until is not None:
        bound = until if bound is None else min(bound, until)
    for d in _dates_from(rule, 0):
        if bound is not None and d > bound:
            return
        yield d


def next_occurrence(rule: RecurringRule, on_or_after: date) -> Optional[date]:
    for d in _dates_from(rule, _first_index_on_or_after(rule, on_or_after)):
        if rule.end_date is not None and d > rule.end_date:
            return None
        if d >= on_or_after:
            return d
    return None  # pragma: no cover - generator is unbounded


def count_occurrences(rule: RecurringRule, window: DateWindow) -> int:
    if rule.start_date > window.end:
        return 0
    if rule.end_date is not None and rule.end_date < window.start:
        return 0

    effective_start = max(rule.start_date, window.start)
    effective_end = min(rule.end_date, window.end) if rule.end_date else window.end
    if effective_start > effective_end:
        return 0

    step = _STEP_DAYS.get(rule.frequency)
    if step:
        first = _ceil_div((effective_start - rule.start_date).days, step)
        last = (effective_end - rule.start_date).days // step
        return max(0, last - first + 1)

    count = 0
    for d in _dates_from(rule, _first_index_on_or_after(rule, effective_start)):
        if d > effective_end:
            break
        if d >= effective_start:
            count += 1
    return count


def contribution(rule: RecurringRule, window: DateWindow) -> int:
    return rule.amount * count_occurrences(rule, window)


# --------------------
# Totals across rules
# --------------------
@dataclass(frozen=True)
class RecurringLine:
    rule_id: Optional[str]
    name: str
    kind: str
    frequency: str
    occurrences: int
    amount: int
    total: int


@dataclass(frozen=True)
class RecurringTotals:
    total_income: int = 0
    total_expense: int = 0
    lines: List[RecurringLine] = field(default_factory=list)

    @property
    def net(self) -> int:
        return self.total_income - self.total_expense

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_income": self.total_income,
            "total_expense": self.total_expense,
            "net": self.net,
            "lines": [asdict(line) for line in self.lines],
        }


def recurring_totals(rules: Iterable[RecurringRule], window: DateWindow) -> RecurringTotals:
    """Income/expense impact of the active rules over the window."""
    income = 0
    expense = 0
    lines: List[RecurringLine] = []
    for rule in rules:
        if not rule.active:
            continue
        n = count_occurrences(rule, window)
        total = rule.amount * n
        if rule.kind is RecurringKind.INCOME:
            income += total
        else:
            expense += total
        lines.append(RecurringLine(
            rule_id=rule.id,
            name=rule.name,
            kind=rule.kind.value,
            frequency=rule.frequency.value,
            occurrences=n,
            amount=rule.amount,
            total=total,
        ))
    return RecurringTotals(total_income=income, total_expense=expense, lines=lines)
