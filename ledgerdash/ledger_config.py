# ledgerdash/ledger_config.py
# Central knobs for kinds, frequencies and the labels the dashboard shows.

# --------------------------
# Recurring schedule frequencies (only these five are supported)
# --------------------------
FREQUENCY_LABELS = {
    "daily": "Daily",
    "weekly": "Weekly",
    "biweekly": "Bi-weekly",
    "monthly": "Monthly",
    "yearly": "Yearly",
}

# --------------------------
# Manual transaction kinds
# --------------------------
MANUAL_KINDS = ["income", "expense", "adjustment", "royalty", "transfer"]

# Kinds that count as money in / money out in totals and charts.
# adjustment + transfer are carried but never summed.
INCOME_KINDS = ("income", "royalty")
EXPENSE_KINDS = ("expense",)

# Fixed category label for processor-sourced charges
PROCESSOR_CATEGORY = "Stripe Payments"

# Only charges in this status are treated as settled
SETTLED_CHARGE_STATUS = "succeeded"

# --------------------------
# Categories offered when entering a manual transaction
# --------------------------
MANUAL_CATEGORIES = [
    "Platform Revenue",
    "Royalty Payment",
    "Stripe Fee",
    "Platform Fee",
    "Bank Transfer",
    "Tax Payment",
    "Operating Expense",
    "Software/Tools",
    "Marketing",
    "Legal/Professional",
    "Other Income",
    "Other Expense",
]

# --------------------------
# Payments API transaction type labels
# --------------------------
TRANSACTION_TYPE_LABELS = {
    "charge": "Payment",
    "payment": "Payment",
    "payout": "Payout",
    "refund": "Refund",
    "adjustment": "Adjustment",
    "stripe_fee": "Stripe Fee",
    "application_fee": "App Fee",
    "transfer": "Transfer",
}

# --------------------------
# Status -> UI tone
# --------------------------
STATUS_TONES = {
    "succeeded": "success",
    "paid": "success",
    "active": "success",
    "pending": "warning",
    "processing": "warning",
    "failed": "destructive",
    "canceled": "destructive",
    "cancelled": "destructive",
}

# --------------------------
# Corporate calendar
# --------------------------
EVENT_TYPES = {
    "tax_deadline": "Tax Deadline",
    "filing": "Filing Due",
    "renewal": "Renewal",
    "meeting": "Meeting",
    "general": "General",
}

DEADLINE_PRESETS = [
    {"name": "Hawaii Corporate Tax (Form N-30)", "form": "N-30", "type": "tax_deadline"},
    {"name": "IRS Form 1120 (Corporate Tax)", "form": "1120", "type": "tax_deadline"},
    {"name": "IRS Form 5472 (Foreign Ownership)", "form": "5472", "type": "filing"},
    {"name": "IRS Form 8833 (Treaty-Based Return)", "form": "8833", "type": "filing"},
]

# Reminder lead time: presets get a month, hand-entered events a week
PRESET_REMINDER_DAYS = 30
DEFAULT_REMINDER_DAYS = 7

# --------------------------
# Tax clock: first corporate filing is due 15 months after incorporation
# --------------------------
TAX_CLOCK_MONTHS = 15
TAX_CLOCK_HORIZON_DAYS = 450

# Status bands (days remaining, inclusive upper bounds)
TAX_CLOCK_BANDS = {"urgent": 30, "warning": 90}
EVENT_BANDS = {"urgent": 7, "warning": 30}

# --------------------------
# Royalty splits (label keeps the rest)
# --------------------------
ARTIST_SHARE = 0.30

# --------------------------
# Statement defaults
# --------------------------
DEFAULT_CURRENCY = "CAD"
DEFAULT_CONVERSION_RATE = 1.36  # USD -> CAD, static on purpose
STATEMENT_FILE_PREFIX = "XZ1"
