"""Date formatting for rendered documents."""

from datetime import date, datetime
from typing import Optional, Union


def format_au_date(
    value: Union[str, date, None],
    today: Optional[date] = None,
) -> str:
    """Format a date the way Australian documents print it, e.g. ``5 March 2024``.

    Args:
        value: ISO date or datetime string, or a date object
        today: Date used when ``value`` is empty (defaults to the current date)

    Returns:
        The formatted date; unparseable strings are returned unchanged
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        parsed = today or date.today()
    elif isinstance(value, datetime):
        parsed = value.date()
    elif isinstance(value, date):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
        except ValueError:
            return value

    return f"{parsed.day} {parsed.strftime('%B')} {parsed.year}"
