# docsign/utils/date_formats.py

"""
Date formats a document can be configured with, and rendering of the
value stored into DATE fields when they are signed.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from docsign.core.config import settings
from docsign.utils.logger import get_logger

logger = get_logger(__name__)

ISO_8601_FORMAT = "yyyy-MM-dd'T'HH:mm:ss.SSSXXX"

# Document date format token -> strftime pattern
DATE_FORMATS = {
    "yyyy-MM-dd hh:mm a": "%Y-%m-%d %I:%M %p",
    "yyyy-MM-dd": "%Y-%m-%d",
    "dd/MM/yyyy": "%d/%m/%Y",
    "MM/dd/yyyy": "%m/%d/%Y",
    "dd/MM/yyyy HH:mm": "%d/%m/%Y %H:%M",
    "MM/dd/yyyy HH:mm": "%m/%d/%Y %H:%M",
    "dd.MM.yyyy HH:mm": "%d.%m.%Y %H:%M",
    "yyyy-MM-dd HH:mm": "%Y-%m-%d %H:%M",
    "yy-MM-dd": "%y-%m-%d",
    "yyyy-MM-dd HH:mm:ss": "%Y-%m-%d %H:%M:%S",
    "MMMM dd, yyyy": "%B %d, %Y",
    "EEEE, MMMM dd, yyyy": "%A, %B %d, %Y",
    ISO_8601_FORMAT: None,
}

DEFAULT_DOCUMENT_DATE_FORMAT = settings.default_date_format
DEFAULT_DOCUMENT_TIME_ZONE = settings.default_timezone


def is_supported_date_format(date_format: Optional[str]) -> bool:
    """Check whether the given format token is one a document may use."""
    return bool(date_format) and date_format in DATE_FORMATS


def resolve_timezone(tz_name: Optional[str]) -> ZoneInfo:
    """Resolve an IANA timezone name, falling back to the default document timezone."""
    try:
        return ZoneInfo(tz_name or DEFAULT_DOCUMENT_TIME_ZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone, using default", timezone=tz_name)
        return ZoneInfo(DEFAULT_DOCUMENT_TIME_ZONE)


def format_signing_date(
    date_format: Optional[str],
    tz_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Render the moment of signing in the document's timezone and date format.

    Args:
        date_format: One of the DATE_FORMATS keys; the default format is used when empty.
        tz_name: IANA timezone of the document.
        now: Moment to render, defaults to the current UTC time.

    Returns:
        The text stored in the DATE field.
    """
    date_format = date_format or DEFAULT_DOCUMENT_DATE_FORMAT
    if date_format not in DATE_FORMATS:
        raise ValueError(f"Unsupported date format: {date_format}")

    moment = (now or datetime.now(timezone.utc)).astimezone(resolve_timezone(tz_name))

    pattern = DATE_FORMATS[date_format]
    if pattern is None:
        return moment.isoformat(timespec="milliseconds")
    return moment.strftime(pattern)
