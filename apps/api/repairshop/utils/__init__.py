"""Utility modules."""

from repairshop.utils.datetime_parsing import as_utc, format_cursor, parse_cursor
from repairshop.utils.normalization import normalize_email, normalize_name
from repairshop.utils.pagination import CursorPage, clamp_limit
from repairshop.utils.presentation import format_money, status_label

__all__ = [
    # Datetime
    "as_utc",
    "format_cursor",
    "parse_cursor",
    # Normalization
    "normalize_email",
    "normalize_name",
    # Pagination
    "CursorPage",
    "clamp_limit",
    # Presentation
    "format_money",
    "status_label",
]
