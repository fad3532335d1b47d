import random
from dataclasses import replace
from datetime import date, datetime, timezone

import pytest

from ledgerdash.aggregation import (
    EventKind,
    GroupBy,
    LedgerEvent,
    aggregate,
    bucket_key,
    bucket_label,
    category_breakdown,
    collect_events,
    filter_window,
    settled_charges,
    summarize,
)
from ledgerdash.errors import InvalidArgument
from ledgerdash.occurrences import DateWindow


def ts(y, m, d, hour=12):
    return int(datetime(y, m, d, hour, tzinfo=timezone.utc).timestamp())


def make_charge(**kwargs):
    base = dict(
        id="ch_1",
        amount=10000,
        currency="cad",
        status="succeeded",
        created=ts(2025, 3, 5),
        description="Beat license",
        balance_transaction={"id": "txn_1", "fee": 300, "net": 9700},
    )
    base.update(kwargs)
    return base


def make_manual(**kwargs):
    base = dict(
        id="m1",
        transaction_date="2025-03-20",
        amount=2500,
        currency="CAD",
        type="expense",
        category="Software/Tools",
        description="Plugins",
    )
    base.update(kwargs)
    return base


def make_event(**kwargs):
    base = dict(
        occurred_on=date(2025, 3, 5),
        amount_minor=1000,
        currency="CAD",
        category="Other Income",
        kind="income",
    )
    base.update(kwargs)
    return LedgerEvent(**base)


def test_charge_and_expense_share_a_month_bucket():
    events = collect_events([make_charge()], [make_manual()])
    buckets = aggregate(events, "month")
    assert len(buckets) == 1
    b = buckets[0]
    assert b.key == "2025-03"
    assert (b.income, b.expense, b.fees, b.net) == (10000, 2500, 300, 7200)
    assert b.label == "Mar 2025"


def test_only_succeeded_charges_are_collected():
    charges = [make_charge(), make_charge(id="ch_2", status="failed"), make_charge(id="ch_3", status="pending")]
    assert [c["id"] for c in settled_charges(charges)] == ["ch_1"]
    assert len(collect_events(charges, [])) == 1


def test_unexpanded_balance_transaction_has_no_fee():
    ev = LedgerEvent.from_charge(make_charge(balance_transaction="txn_123"))
    assert ev.fee_minor == 0
    assert ev.category == "Stripe Payments"
    assert ev.kind is EventKind.INCOME
    assert ev.currency == "CAD"


def test_event_accepts_enum_member():
    ev = make_event(kind=EventKind.EXPENSE, amount_minor=200)
    assert ev.kind is EventKind.EXPENSE
    assert replace(ev, amount_minor=300).kind is EventKind.EXPENSE


def test_royalty_is_income_and_adjustment_is_ignored():
    events = [
        make_event(kind="royalty", amount_minor=700),
        make_event(kind="adjustment", amount_minor=5000),
        make_event(kind="transfer", amount_minor=5000),
        make_event(kind="expense", amount_minor=200),
    ]
    [b] = aggregate(events, GroupBy.MONTH)
    assert (b.income, b.expense, b.fees) == (700, 200, 0)


def test_buckets_sorted_ascending_without_gaps():
    events = [
        make_event(occurred_on=date(2025, 5, 2)),
        make_event(occurred_on=date(2025, 1, 9)),
        make_event(occurred_on=date(2025, 3, 30)),
    ]
    keys = [b.key for b in aggregate(events, "month")]
    assert keys == ["2025-01", "2025-03", "2025-05"]


def test_aggregate_is_order_independent():
    events = [make_event(occurred_on=date(2025, 1, d % 28 + 1), amount_minor=d * 10, kind=k)
              for d, k in zip(range(40), ["income", "expense", "royalty", "adjustment"] * 10)]
    expected = [b.to_dict() for b in aggregate(events, "week")]
    shuffled = list(events)
    random.Random(7).shuffle(shuffled)
    assert [b.to_dict() for b in aggregate(shuffled, "week")] == expected


def test_empty_input_gives_empty_buckets():
    assert aggregate([], "day") == []
    assert category_breakdown([]) == []


def test_unknown_group_by_is_invalid():
    with pytest.raises(InvalidArgument):
        aggregate([make_event()], "quarter")


def test_week_buckets_start_on_sunday():
    # 2025-03-05 is a Wednesday
    key, start = bucket_key(date(2025, 3, 5), "week")
    assert start == date(2025, 3, 2)
    assert key == "2025-03-02"
    assert bucket_key(date(2025, 3, 2), "week")[1] == date(2025, 3, 2)
    assert bucket_key(date(2025, 3, 8), "week")[1] == date(2025, 3, 2)
    assert bucket_label(start, "week") == "Week of Mar 2"


def test_day_key_and_label():
    assert bucket_key(date(2025, 3, 5), "day") == ("2025-03-05", date(2025, 3, 5))
    assert bucket_label(date(2025, 3, 5), "day") == "Mar 5"


def test_category_breakdown_descending():
    events = collect_events(
        [make_charge(), make_charge(id="ch_2", amount=5000)],
        [
            make_manual(category="Marketing", amount=20000),
            make_manual(category="Royalty Payment", type="royalty", amount=3000),
            make_manual(category="Marketing", amount=1000, type="income"),
        ],
    )
    cats = category_breakdown(events)
    assert [(c.category, c.total) for c in cats] == [
        ("Marketing", 21000),
        ("Stripe Payments", 15000),
        ("Royalty Payment", 3000),
    ]
    assert cats[0].count == 2


def test_filter_window_is_inclusive():
    events = [make_event(occurred_on=date(2025, 3, d)) for d in (1, 15, 31)]
    w = DateWindow(date(2025, 3, 1), date(2025, 3, 15))
    assert [e.occurred_on.day for e in filter_window(events, w)] == [1, 15]


def test_summarize_counts_processor_payments():
    events = collect_events([make_charge(), make_charge(id="ch_2")], [make_manual()])
    s = summarize(events)
    assert s.income == 20000
    assert s.expense == 2500
    assert s.fees == 600
    assert s.net == 16900
    assert s.successful_payments == 2


def test_negative_amount_rejected():
    with pytest.raises(InvalidArgument):
        make_event(amount_minor=-5)


def test_unknown_manual_type_rejected():
    with pytest.raises(InvalidArgument):
        LedgerEvent.from_manual(make_manual(type="gift"))
