"""Date manipulation utilities"""

from datetime import date, timedelta
from typing import List


def generate_date_range(start: date, end: date) -> List[date]:
    """Generate list of dates from start to end (inclusive)"""
    days = (end - start).days + 1
    return [start + timedelta(days=i) for i in range(days)]


def trailing_days(days: int, end: date | None = None) -> List[date]:
    """The last `days` calendar days ending at `end` (default: today), oldest first"""
    end = end or date.today()
    return generate_date_range(end - timedelta(days=days - 1), end)
