"""Slug helpers for building upstream API paths from display names."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_INVALID = re.compile(r"[^\w-]", re.ASCII)
_DASH_RUNS = re.compile(r"-+")


def create_slug(value: str) -> str:
    """Turn a realm or guild display name into an API slug.

    Lower-cases, replaces whitespace with "-", drops anything that is not an
    ASCII word character or "-", collapses repeated dashes and trims dashes at
    both ends.

    >>> create_slug("Argent Dawn")
    'argent-dawn'
    >>> create_slug("  Kel'Thuzad ")
    'kelthuzad'
    """
    slug = _WHITESPACE.sub("-", value.strip().lower())
    slug = _INVALID.sub("", slug)
    slug = _DASH_RUNS.sub("-", slug)
    return slug.strip("-")
