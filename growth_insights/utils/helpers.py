"""
Helper utilities
"""
from datetime import date, datetime
from typing import Any
import hashlib
import json


def hash_data(data: Any) -> str:
    """Create hash of data for caching/deduplication"""
    data_str = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(data_str.encode()).hexdigest()


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers"""
    try:
        return numerator / denominator if denominator != 0 else default
    except (TypeError, ZeroDivisionError):
        return default


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into [lower, upper]"""
    return max(lower, min(upper, value))


def days_between(start: datetime, end: datetime) -> int:
    """Whole days between two timestamps, rounded up"""
    seconds = (end - start).total_seconds()
    return int(-(-seconds // 86400))


def calendar_day(value: datetime) -> date:
    """Calendar date of a timestamp"""
    return value.date() if isinstance(value, datetime) else value


def format_currency(amount: float, currency: str = "USD") -> str:
    """Format amount as currency"""
    symbols = {"USD": "$", "EUR": "€", "GBP": "£"}
    symbol = symbols.get(currency, currency)
    if abs(amount) >= 1_000_000:
        return f"{symbol}{amount / 1_000_000:.1f}M"
    if abs(amount) >= 1_000:
        return f"{symbol}{amount / 1_000:.1f}K"
    return f"{symbol}{amount:,.0f}"


def title_case_metric(metric: str) -> str:
    """'revenue_shopify' -> 'Revenue (shopify)'"""
    base, _, qualifier = metric.partition("_")
    label = base[:1].upper() + base[1:]
    return f"{label} ({qualifier})" if qualifier else label
