"""
Utility functions and helpers for spotifetch
Small pure functions shared by the auth and pagination layers
"""

import math
from typing import Iterable, Iterator, List, Optional, Sequence, TypeVar
from urllib.parse import urljoin

T = TypeVar('T')


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """
    Split a sequence into contiguous groups of at most `size` elements

    Order is preserved both across and within groups. An empty input yields
    nothing.

    Args:
        items: Sequence to split
        size: Maximum group size (must be positive)

    Yields:
        Lists of consecutive elements
    """
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")

    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def ceil_div(total: int, size: int) -> int:
    """
    Number of pages needed to hold `total` items at `size` per page

    Negative or missing totals count as zero pages.
    """
    if not total or total < 0:
        return 0
    return int(math.ceil(total / float(size)))


def mask_secret(secret: Optional[str], visible: int = 4) -> str:
    """
    Mask a credential for logging

    Keeps only the last `visible` characters so two different secrets can
    still be told apart in a log file.

    Args:
        secret: Secret value (client secret, refresh token)
        visible: Number of trailing characters left readable

    Returns:
        Masked string, e.g. '********a1b2'
    """
    if not secret:
        return "<empty>"
    if len(secret) <= visible:
        return "*" * len(secret)
    return "*" * (len(secret) - visible) + secret[-visible:]


def resolve_url(base_url: str, path_or_url: str) -> str:
    """
    Resolve an API path against the base URL

    Absolute URLs (pagination `next` links) are returned unchanged; relative
    paths are joined onto the base without dropping its version prefix.
    """
    if path_or_url.startswith(('http://', 'https://')):
        return path_or_url
    if not base_url.endswith('/'):
        base_url += '/'
    return urljoin(base_url, path_or_url.lstrip('/'))


def unique_ids(ids: Iterable[Optional[str]]) -> List[str]:
    """
    Drop empty identifiers and duplicates, keeping first-seen order
    """
    seen = set()
    result = []
    for item_id in ids:
        if not item_id or item_id in seen:
            continue
        seen.add(item_id)
        result.append(item_id)
    return result
