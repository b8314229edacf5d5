"""
HISAB - Formatting Utilities
Version: 1.0.0

Shared formatting helpers for every HISAB page.

FEATURES:
- Currency formatting (INR, Indian digit grouping 1,50,000)
- Compact lakh / crore formatting for metric cards
- Percentage and date formatting
- Display metadata (color, emoji, label) per status and transaction type

Raw aggregation never goes through these helpers; they only turn numbers
that were already computed into display strings.
"""

from datetime import datetime, date
from decimal import Decimal, ROUND_HALF_UP
from typing import Union, Optional

import pandas as pd

# ============================================================================
# CONSTANTS
# ============================================================================

CURRENCY_SYMBOL = "₹"

LAKH = 100_000
CRORE = 10_000_000

PROJECT_STATUS_STYLES = {
    'pending': {'color': '#f59e0b', 'emoji': '🟡', 'label': 'Pending'},
    'active': {'color': '#10b981', 'emoji': '🟢', 'label': 'Active'},
    'in_process': {'color': '#f97316', 'emoji': '🟠', 'label': 'In Process'},
    'completed': {'color': '#3b82f6', 'emoji': '🔵', 'label': 'Completed'},
}

TRANSACTION_TYPE_STYLES = {
    'bill_sent': {'color': '#eab308', 'emoji': '🧾', 'label': 'Bill Sent'},
    'invoice': {'color': '#eab308', 'emoji': '📄', 'label': 'Invoice'},
    'payment_received': {'color': '#10b981', 'emoji': '💰', 'label': 'Payment Received'},
    'advance': {'color': '#10b981', 'emoji': '⏩', 'label': 'Advance'},
    'by_hand': {'color': '#10b981', 'emoji': '🤝', 'label': 'By Hand'},
    'credit_note': {'color': '#8b5cf6', 'emoji': '📝', 'label': 'Credit Note'},
    'refund': {'color': '#ef4444', 'emoji': '↩️', 'label': 'Refund'},
}

QUOTATION_STATUS_STYLES = {
    'draft': {'color': '#6b7280', 'emoji': '✏️', 'label': 'Draft'},
    'sent': {'color': '#3b82f6', 'emoji': '📤', 'label': 'Sent'},
    'accepted': {'color': '#10b981', 'emoji': '✅', 'label': 'Accepted'},
    'rejected': {'color': '#ef4444', 'emoji': '❌', 'label': 'Rejected'},
    'revised': {'color': '#f59e0b', 'emoji': '🔁', 'label': 'Revised'},
}

MILESTONE_STATUS_STYLES = {
    'pending': {'color': '#f59e0b', 'emoji': '⏳', 'label': 'Pending'},
    'invoiced': {'color': '#3b82f6', 'emoji': '🧾', 'label': 'Invoiced'},
    'paid': {'color': '#10b981', 'emoji': '✅', 'label': 'Paid'},
}

URGENCY_STYLES = {
    'no_invoice': {'color': '#94a3b8', 'emoji': '⚪', 'label': 'No Invoice'},
    'recent': {'color': '#10b981', 'emoji': '🟢', 'label': 'Recent'},
    'normal': {'color': '#eab308', 'emoji': '🟢', 'label': 'Normal'},
    'follow_up': {'color': '#f59e0b', 'emoji': '🟡', 'label': 'Follow Up'},
    'overdue': {'color': '#ef4444', 'emoji': '🔴', 'label': 'Overdue'},
}

_UNKNOWN_STYLE = {'color': '#6b7280', 'emoji': '⚪', 'label': 'Unknown'}


# ============================================================================
# CURRENCY FORMATTING
# ============================================================================

def _is_null(value) -> bool:
    return value is None or (not isinstance(value, str) and pd.isna(value))


def group_indian_digits(number: int) -> str:
    """
    Groups digits the Indian way: last three, then pairs.

    Examples:
        >>> group_indian_digits(150000)
        '1,50,000'
        >>> group_indian_digits(27500)
        '27,500'
    """
    digits = str(abs(int(number)))
    if len(digits) <= 3:
        return digits

    tail = digits[-3:]
    head = digits[:-3]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)

    return ",".join(groups + [tail])


def format_currency(
    value: Union[float, int, None],
    show_symbol: bool = True
) -> str:
    """
    Formats an amount as INR with zero fractional digits and Indian grouping

    Args:
        value: Number to format (None/NaN render as zero)
        show_symbol: Whether to prefix the ₹ symbol

    Returns:
        str: Formatted value

    Examples:
        >>> format_currency(50000)
        '₹50,000'
        >>> format_currency(150000)
        '₹1,50,000'
        >>> format_currency(-20000)
        '-₹20,000'
    """
    symbol = CURRENCY_SYMBOL if show_symbol else ""
    if _is_null(value):
        return f"{symbol}0"

    rounded = Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{group_indian_digits(int(abs(rounded)))}"


def format_currency_compact(value: Union[float, int, None]) -> str:
    """
    Formats large amounts in lakh (L) and crore (Cr) for metric cards

    Examples:
        >>> format_currency_compact(275000)
        '₹2.75L'
        >>> format_currency_compact(12_000_000)
        '₹1.20Cr'
        >>> format_currency_compact(1500)
        '₹1.5K'
    """
    if _is_null(value) or value == 0:
        return f"{CURRENCY_SYMBOL}0"

    abs_value = abs(value)
    sign = "-" if value < 0 else ""

    if abs_value >= CRORE:
        return f"{sign}{CURRENCY_SYMBOL}{abs_value / CRORE:.2f}Cr"
    elif abs_value >= LAKH:
        return f"{sign}{CURRENCY_SYMBOL}{abs_value / LAKH:.2f}L"
    elif abs_value >= 1_000:
        return f"{sign}{CURRENCY_SYMBOL}{abs_value / 1_000:.1f}K"
    else:
        return format_currency(value)


# ============================================================================
# PERCENTAGE FORMATTING
# ============================================================================

def format_percentage(
    value: Union[float, int, None],
    decimals: int = 1
) -> str:
    """
    Formats a value that is already expressed in percentage points

    Examples:
        >>> format_percentage(33.333)
        '33.3%'
        >>> format_percentage(None)
        '0%'
    """
    if _is_null(value):
        return "0%"
    return f"{value:.{decimals}f}%"


# ============================================================================
# DATE FORMATTING
# ============================================================================

def format_date(
    value: Union[datetime, date, str, None],
    style: str = "short",
    today: Optional[date] = None
) -> str:
    """
    Formats dates for display (en-IN conventions)

    Args:
        value: Date to format
        style: "short", "long", "iso", "relative"
        today: Reference date for the relative style

    Returns:
        str: Formatted date

    Examples:
        >>> format_date(date(2024, 11, 15), "short")
        '15 Nov 2024'
        >>> format_date(date(2024, 11, 15), "long")
        '15 November 2024'
    """
    if _is_null(value) or value == "":
        return "N/A"

    if isinstance(value, str):
        try:
            value = pd.to_datetime(value).to_pydatetime()
        except (ValueError, TypeError):
            return value

    if isinstance(value, datetime):
        value = value.date()

    if style == "short":
        return f"{value.day} {value.strftime('%b %Y')}"

    elif style == "long":
        return f"{value.day} {value.strftime('%B %Y')}"

    elif style == "iso":
        return value.isoformat()

    elif style == "relative":
        today = today or date.today()
        days = (today - value).days

        if days == 0:
            return "Today"
        elif days == 1:
            return "Yesterday"
        elif days == -1:
            return "Tomorrow"
        elif 0 < days < 7:
            return f"{days} days ago"
        elif -7 < days < 0:
            return f"In {abs(days)} days"
        elif 7 <= days < 30:
            weeks = days // 7
            return f"{weeks} week{'s' if weeks > 1 else ''} ago"
        else:
            return f"{value.day} {value.strftime('%b %Y')}"

    else:
        return value.strftime("%d/%m/%Y")


# ============================================================================
# STATUS AND COLOR
# ============================================================================

def get_status_info(catalog: dict, key: Optional[str]) -> dict:
    """Color, emoji and label for a status or type key"""
    if not key:
        return _UNKNOWN_STYLE
    return catalog.get(key.lower(), {**_UNKNOWN_STYLE, 'label': type_label(key)})


def type_label(key: Optional[str]) -> str:
    """
    Upper-case label for transaction types and payment modes

    Examples:
        >>> type_label("payment_received")
        'PAYMENT RECEIVED'
        >>> type_label(None)
        'N/A'
    """
    if not key:
        return "N/A"
    return key.replace("_", " ").upper()


def traffic_light_color(percentage: float) -> str:
    """
    Traffic-light color for collection progress bars (0-100)

    Examples:
        >>> traffic_light_color(90)
        '#10b981'
        >>> traffic_light_color(20)
        '#ef4444'
    """
    if percentage >= 75:
        return '#10b981'
    elif percentage >= 50:
        return '#3b82f6'
    elif percentage >= 25:
        return '#f59e0b'
    else:
        return '#ef4444'


# ============================================================================
# REPORT HELPERS
# ============================================================================

def generate_timestamp() -> str:
    """Timestamp "YYYYMMDD_HHMM" for file names"""
    return datetime.now().strftime("%Y%m%d_%H%M")
