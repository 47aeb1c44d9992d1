"""
Type URL allow-list filtering.

An empty allow-list lets every event through.
"""

from typing import AbstractSet, FrozenSet, Optional


def parse_allowed_type_urls(raw: Optional[str]) -> FrozenSet[str]:
    """Split a comma separated allow-list, trimming entries and dropping empty ones."""
    if not raw:
        return frozenset()
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def is_type_url_allowed(type_url: str, allowed_type_urls: AbstractSet[str]) -> bool:
    """
    Check a type URL against the allow-list.

    Matching is exact and case-sensitive after trimming whitespace on both
    sides. There is no wildcard or prefix matching.
    """
    if not allowed_type_urls:
        return True
    type_url = type_url.strip()
    return any(type_url == allowed.strip() for allowed in allowed_type_urls)
