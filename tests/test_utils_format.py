"""Display formatting helpers"""

from datetime import date, datetime

import pytest

from utils_format import (
    PROJECT_STATUS_STYLES,
    format_currency,
    format_currency_compact,
    format_date,
    format_percentage,
    get_status_info,
    group_indian_digits,
    traffic_light_color,
    type_label,
)


class TestCurrency:
    @pytest.mark.parametrize("value,expected", [
        (50000, "₹50,000"),
        (150000, "₹1,50,000"),
        (12345678, "₹1,23,45,678"),
        (999, "₹999"),
        (0, "₹0"),
        (None, "₹0"),
        (float('nan'), "₹0"),
        (-20000, "-₹20,000"),
        (27499.5, "₹27,500"),
    ])
    def test_format_currency(self, value, expected):
        assert format_currency(value) == expected

    def test_without_symbol(self):
        assert format_currency(305000, show_symbol=False) == "3,05,000"

    def test_grouping(self):
        assert group_indian_digits(1000) == "1,000"
        assert group_indian_digits(100000) == "1,00,000"

    @pytest.mark.parametrize("value,expected", [
        (275000, "₹2.75L"),
        (12_000_000, "₹1.20Cr"),
        (1500, "₹1.5K"),
        (500, "₹500"),
        (0, "₹0"),
        (-150000, "-₹1.50L"),
    ])
    def test_compact(self, value, expected):
        assert format_currency_compact(value) == expected


class TestPercentageAndDates:
    def test_percentage(self):
        assert format_percentage(67.7248) == "67.7%"
        assert format_percentage(100, decimals=0) == "100%"
        assert format_percentage(None) == "0%"

    def test_date_styles(self):
        d = date(2024, 11, 5)
        assert format_date(d) == "5 Nov 2024"
        assert format_date(d, "long") == "5 November 2024"
        assert format_date(d, "iso") == "2024-11-05"
        assert format_date(datetime(2024, 11, 5, 18, 30)) == "5 Nov 2024"
        assert format_date("2024-11-05") == "5 Nov 2024"
        assert format_date(None) == "N/A"

    @pytest.mark.parametrize("value,expected", [
        (date(2024, 12, 31), "Today"),
        (date(2024, 12, 30), "Yesterday"),
        (date(2025, 1, 1), "Tomorrow"),
        (date(2024, 12, 28), "3 days ago"),
        (date(2025, 1, 3), "In 3 days"),
        (date(2024, 12, 17), "2 weeks ago"),
        (date(2024, 10, 1), "1 Oct 2024"),
    ])
    def test_relative(self, value, expected):
        assert format_date(value, "relative", today=date(2024, 12, 31)) == expected


class TestLabels:
    def test_type_label(self):
        assert type_label("bill_sent") == "BILL SENT"
        assert type_label("") == "N/A"

    def test_status_info(self):
        assert get_status_info(PROJECT_STATUS_STYLES, "IN_PROCESS")['label'] == "In Process"
        assert get_status_info(PROJECT_STATUS_STYLES, "archived")['label'] == "ARCHIVED"
        assert get_status_info(PROJECT_STATUS_STYLES, None)['label'] == "Unknown"

    @pytest.mark.parametrize("pct,color", [
        (100, '#10b981'), (75, '#10b981'), (50, '#3b82f6'), (25, '#f59e0b'), (0, '#ef4444'),
    ])
    def test_traffic_light(self, pct, color):
        assert traffic_light_color(pct) == color
