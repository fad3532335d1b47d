from datetime import date, datetime

from ledgerdash.formatters import (
    format_currency,
    format_date,
    format_date_time,
    status_tone,
    transaction_type_label,
)


def test_format_currency():
    assert format_currency(123456) == "$1,234.56"
    assert format_currency(5, "usd") == "US$0.05"
    assert format_currency(-2500, "CAD") == "-$25.00"
    assert format_currency(100, "JPY") == "JPY 1.00"


def test_format_date():
    assert format_date(date(2025, 3, 5)) == "Mar 5, 2025"
    assert format_date(0) == "Jan 1, 1970"
    assert format_date_time(datetime(2025, 4, 1, 9, 30)) == "Apr 1, 2025, 09:30"


def test_status_tone():
    assert status_tone("Succeeded") == "success"
    assert status_tone("pending") == "warning"
    assert status_tone("canceled") == "destructive"
    assert status_tone(None) == "muted"


def test_transaction_type_label():
    assert transaction_type_label("charge") == "Payment"
    assert transaction_type_label("stripe_fee") == "Stripe Fee"
    assert transaction_type_label("payment_refund") == "Payment refund"
