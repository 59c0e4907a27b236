"""
Time-string keys

Messages and bot output entries are keyed by a local ``HH:mm:ss`` string with
no date component. Parsing anchors the time to a reference date, today unless
the caller supplies one.
"""
import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

TIME_KEY_FORMAT = "%H:%M:%S"

_TIME_KEY_PATTERN = re.compile(r"^(\d{1,2}):(\d{1,2}):(\d{1,2})$")


def format_time_key(moment: datetime) -> str:
    """Format a datetime as the ``HH:mm:ss`` key used for store entries"""
    return moment.strftime(TIME_KEY_FORMAT)


def parse_time_key(key: str, reference: Optional[date] = None) -> datetime:
    """
    Rebuild a timestamp from a store key

    Args:
        key: ``HH:mm:ss`` key, or any full date string
        reference: Date the time belongs to (defaults to today)

    Returns:
        Parsed datetime; the current time when the key cannot be parsed
    """
    now = datetime.now()
    day = reference or now.date()

    if not isinstance(key, str):
        return now

    match = _TIME_KEY_PATTERN.match(key.strip())
    if match:
        hours, minutes, seconds = (int(part) for part in match.groups())
        try:
            return datetime(day.year, day.month, day.day, hours, minutes, seconds)
        except ValueError:
            return now

    try:
        parsed = date_parser.parse(key)
    except (ValueError, OverflowError):
        return now

    # Keys are compared with naive local times
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed
