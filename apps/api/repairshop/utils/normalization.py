"""Data normalization utilities for consistent data quality."""

from typing import Optional


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lowercase and trim an email; None if empty."""
    if not email:
        return None
    return email.strip().lower()


def normalize_name(name: Optional[str]) -> Optional[str]:
    """Trim and collapse internal whitespace; None if empty."""
    if not name:
        return None
    cleaned = " ".join(name.split())
    return cleaned or None


def normalize_equipment_label(value: Optional[str]) -> Optional[str]:
    """
    Normalize equipment brand/model text.

    Collapses whitespace and upper-cases so "torrey  l-eq 10" and
    "Torrey L-EQ 10" land on the same label.
    """
    cleaned = normalize_name(value)
    return cleaned.upper() if cleaned else None
