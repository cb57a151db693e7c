"""
Account identity normalization.

Every lookup by email (accounts, affiliations, request ownership) goes through
normalize_email so that "Jane@Corp.com" and "jane@corp.com" are one identity.
Stored emails are normalized on write; queries also lower() the column so rows
written before normalization still match.
"""

from __future__ import annotations

from sqlalchemy import func


def normalize_email(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip().lower()


def same_identity(a: str | None, b: str | None) -> bool:
    return normalize_email(a) == normalize_email(b) != ""


def email_matches(column, value: str | None):
    """SQL predicate: case-insensitive equality between column and value."""
    return func.lower(column) == normalize_email(value)
