# formatting.py
from datetime import datetime
from typing import Optional

_SYMBOL = "$"


def format_currency(value: Optional[float], symbol: str = _SYMBOL) -> str:
    if value is None:
        return f"{symbol}-"
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_percentage(pct: Optional[float]) -> str:
    if pct is None:
        return "-"
    return f"{pct:.2f}%"


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%b %d, %Y %H:%M")


def change_class(value: Optional[float], threshold: float = 0.0) -> str:
    """Tile colour: 'positive' at/above threshold, 'negative' below, 'neutral' for None."""
    if value is None:
        return "neutral"
    return "positive" if value >= threshold else "negative"
