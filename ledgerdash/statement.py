# ledgerdash/statement.py
"""
Statement data preparation.

Produces the plain structure a document renderer consumes: header fields,
summary totals and two itemized row sets (processor charges, manual
transactions). Every amount is converted to the statement currency row by
row, and the summary is the sum of the converted rows, so the totals always
agree with what is printed below them.

Currency conversion uses one static rate between the home currency and the
other currency. It is a convenience figure, not an accounting-grade rate.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from ledgerdash import ledger_config as lc
from ledgerdash.aggregation import EventKind, settled_charges
from ledgerdash.dates import from_unix, require_date
from ledgerdash.errors import InvalidArgument
from ledgerdash.occurrences import DateWindow

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def normalize_currency(code) -> str:
    c = str(code or "").strip().upper()
    if not _CURRENCY_RE.match(c):
        raise InvalidArgument(f"Unsupported currency code: {code!r}")
    return c


def convert_minor(
    amount: int,
    from_currency: str,
    to_currency: str,
    rate: float = lc.DEFAULT_CONVERSION_RATE,
    home_currency: str = lc.DEFAULT_CURRENCY,
) -> int:
    """
    Convert minor units between two currencies with a single static rate.
    Into the home currency multiplies by ``rate``; out of it divides.
    """
    src = normalize_currency(from_currency)
    dst = normalize_currency(to_currency)
    if src == dst:
        return int(amount)
    if rate <= 0:
        raise InvalidArgument("Conversion rate must be positive")
    if dst == home_currency.upper():
        return int(round(amount * rate))
    return int(round(amount / rate))


# --------------------
# Data contract
# --------------------
@dataclass(frozen=True)
class StatementHeader:
    company: str
    title: str
    currency: str
    period_start: date
    period_end: date
    generated_at: datetime
    file_name: str


@dataclass(frozen=True)
class StatementSummary:
    gross_income: int = 0
    operating_expenses: int = 0
    processing_fees: int = 0

    @property
    def net_revenue(self) -> int:
        return self.gross_income - self.operating_expenses - self.processing_fees


@dataclass(frozen=True)
class ChargeRow:
    date: date
    description: str
    amount: int
    fee: Optional[int]
    net: Optional[int]


@dataclass(frozen=True)
class ManualRow:
    date: date
    category: str
    type_label: str
    kind: str
    description: str
    amount: int


@dataclass(frozen=True)
class Statement:
    header: StatementHeader
    summary: StatementSummary
    charge_rows: List[ChargeRow] = field(default_factory=list)
    manual_rows: List[ManualRow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["summary"]["net_revenue"] = self.summary.net_revenue
        h = d["header"]
        h["period_start"] = self.header.period_start.isoformat()
        h["period_end"] = self.header.period_end.isoformat()
        h["generated_at"] = self.header.generated_at.isoformat(timespec="seconds")
        for row in d["charge_rows"] + d["manual_rows"]:
            row["date"] = row["date"].isoformat()
        return d


def statement_file_name(currency: str, window: DateWindow) -> str:
    return f"{lc.STATEMENT_FILE_PREFIX}_Statement_{currency}_{window.start.isoformat()}_to_{window.end.isoformat()}"


def prepare_statement(
    window: DateWindow,
    currency: str,
    charges: Iterable[Dict[str, Any]],
    manual_rows: Iterable[Dict[str, Any]],
    rate: float = lc.DEFAULT_CONVERSION_RATE,
    company: str = "XZ1 Recording Ventures",
    generated_at: Optional[datetime] = None,
    home_currency: str = lc.DEFAULT_CURRENCY,
) -> Statement:
    """
    Rows keep the order they arrive in; only settled charges are listed.
    ``generated_at`` defaults to now, pass it in for reproducible output.
    """
    target = normalize_currency(currency)

    def conv(amount, src) -> int:
        return convert_minor(int(amount or 0), src or home_currency, target, rate, home_currency)

    income = 0
    expenses = 0
    fees = 0

    charge_out: List[ChargeRow] = []
    for ch in settled_charges(charges):
        src = ch.get("currency") or home_currency
        amount = conv(ch.get("amount"), src)
        bt = ch.get("balance_transaction")
        fee = net = None
        if isinstance(bt, dict):
            fee = conv(bt.get("fee"), src)
            net = conv(bt.get("net"), src)
            fees += fee
        income += amount
        charge_out.append(ChargeRow(
            date=from_unix(ch.get("created")),
            description=ch.get("description") or "Payment",
            amount=amount,
            fee=fee,
            net=net,
        ))

    manual_out: List[ManualRow] = []
    for row in manual_rows or []:
        kind = EventKind.from_string(row.get("type"))
        amount = conv(row.get("amount"), row.get("currency"))
        if kind.is_income:
            income += amount
        elif kind.is_expense:
            expenses += amount
        manual_out.append(ManualRow(
            date=require_date(row.get("transaction_date"), "transaction_date"),
            category=row.get("category") or "",
            type_label=kind.value.capitalize(),
            kind=kind.value,
            description=row.get("description") or "-",
            amount=amount,
        ))

    header = StatementHeader(
        company=company,
        title="Financial Statement",
        currency=target,
        period_start=window.start,
        period_end=window.end,
        generated_at=generated_at or datetime.now(),
        file_name=statement_file_name(target, window),
    )
    summary = StatementSummary(gross_income=income, operating_expenses=expenses, processing_fees=fees)
    return Statement(header=header, summary=summary, charge_rows=charge_out, manual_rows=manual_out)


# --------------------
# Artist royalty statement
# --------------------
@dataclass(frozen=True)
class RoyaltyLine:
    date: date
    partner: str
    gross: int
    artist_share: int
    label_share: int


@dataclass(frozen=True)
class RoyaltyStatement:
    artist_name: str
    statement_date: date
    lines: List[RoyaltyLine]
    file_name: str

    @property
    def gross(self) -> int:
        return sum(l.gross for l in self.lines)

    @property
    def artist_total(self) -> int:
        return sum(l.artist_share for l in self.lines)

    @property
    def label_total(self) -> int:
        return sum(l.label_share for l in self.lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "artist_name": self.artist_name,
            "statement_date": self.statement_date.isoformat(),
            "file_name": self.file_name,
            "gross": self.gross,
            "artist_total": self.artist_total,
            "label_total": self.label_total,
            "lines": [
                {**asdict(l), "date": l.date.isoformat()} for l in self.lines
            ],
        }


def prepare_royalty_statement(
    artist_name: str,
    entries: Iterable[Dict[str, Any]],
    statement_date: Optional[date] = None,
) -> RoyaltyStatement:
    """
    Split each revenue entry between artist and label. The artist share is
    rounded to the minor unit and the label keeps the remainder, so the two
    shares always add back up to the gross.
    """
    name = (artist_name or "").strip()
    if not name:
        raise InvalidArgument("artist_name is required")
    when = statement_date or date.today()

    lines: List[RoyaltyLine] = []
    for e in entries or []:
        gross = int(e.get("gross") or 0)
        if gross < 0:
            raise InvalidArgument(f"Revenue entry for {e.get('partner')!r} is negative")
        artist = int(round(gross * lc.ARTIST_SHARE))
        lines.append(RoyaltyLine(
            date=require_date(e.get("date"), "date"),
            partner=e.get("partner") or "",
            gross=gross,
            artist_share=artist,
            label_share=gross - artist,
        ))

    file_name = f"{lc.STATEMENT_FILE_PREFIX}_Artist_Statement_{'_'.join(name.split())}_{when.isoformat()}"
    return RoyaltyStatement(artist_name=name, statement_date=when, lines=lines, file_name=file_name)
