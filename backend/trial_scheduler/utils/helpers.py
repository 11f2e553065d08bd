"""
Utility helper functions
"""
from datetime import date, time
from html import escape


def format_trial_date(value: date) -> str:
    """Long US date, e.g. 'Monday, March 3, 2025'"""
    if not value:
        return ""
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def format_trial_time(value: time) -> str:
    """12-hour clock, e.g. '2:30 PM'"""
    if not value:
        return ""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def pluralize_days(days: int) -> str:
    return f"{days} Day" if days == 1 else f"{days} Days"


def html_text(value) -> str:
    """Escape user-supplied text for interpolation into an HTML body"""
    if value is None:
        return ""
    return escape(str(value), quote=True)
