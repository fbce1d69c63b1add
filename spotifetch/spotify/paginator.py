"""
Pagination and batch enrichment engine

Two independent pieces live here:

1. **Page walking** (walk_pages / PaginatedFetcher): follows the cursor links
   of a paging endpoint. Walking produces a lazy sequence of raw Pages;
   formatting and accumulation consume that sequence. A page cap is simply
   a truncation of the sequence.

2. **Batch enrichment** (BatchChunker / merge_by_id): splits identifiers
   into groups of at most 100, issues one secondary request per group and
   either concatenates the results in input order or keys them by id.

Failure Policy:
    Each page or batch request can fail independently. With
    FailurePolicy.FAIL_FAST the PageFetchError propagates and the
    aggregation stops. With FailurePolicy.BEST_EFFORT the failing step
    degrades to an empty page (zero items, zero total), the error is
    recorded on the FetchResult and the walk goes on. Callers can tell a
    partial result from a full one through FetchResult.complete.

Page Arithmetic:
    The number of requests is ceil(total / page_size), where total comes from
    the first page and page_size is the provider's default for the endpoint
    family (100 for playlist/album tracks, 20 for the /me listings). With a
    page cap, min(ceil(total / page_size), cap) requests are made.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Union

from ..exceptions import ConfigError, FormatError, PageFetchError, SpotifetchError
from ..utils.helpers import ceil_div, chunked
from ..utils.logger import get_logger, create_operation_logger
from .models import Page

logger = get_logger(__name__)

# Provider default page sizes per resource family
TRACK_PAGE_SIZE = 100
LIBRARY_PAGE_SIZE = 20
MAX_BATCH_SIZE = 100

# (cursor, offset) -> Page
PageFetch = Callable[[Optional[str], int], Page]
Formatter = Callable[[Any], Any]


class FailurePolicy(Enum):
    """What a failed page or batch request does to the surrounding aggregation"""
    FAIL_FAST = "fail_fast"
    BEST_EFFORT = "best_effort"

    @classmethod
    def parse(cls, value: Union['FailurePolicy', str, None]) -> 'FailurePolicy':
        if value is None:
            return cls.FAIL_FAST
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigError(
                f"Unknown failure policy: {value}",
                details={'allowed': [p.value for p in cls]}
            )


@dataclass
class FetchResult:
    """
    Outcome of an aggregation

    Attributes:
        items: Formatted items in provider order
        errors: Page, batch and format errors absorbed under the best-effort policy
        requests: Number of page or batch requests issued
    """
    items: List[Any] = field(default_factory=list)
    errors: List[SpotifetchError] = field(default_factory=list)
    requests: int = 0

    @property
    def complete(self) -> bool:
        """True when no page, batch or item was lost"""
        return not self.errors

    def __iter__(self) -> Iterator[Any]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


def _fetch_or_degrade(
    fetch: Callable[[], Any],
    policy: FailurePolicy,
    errors: Optional[List[SpotifetchError]],
    fallback: Any,
) -> Any:
    try:
        return fetch()
    except PageFetchError as e:
        if policy is FailurePolicy.FAIL_FAST:
            raise
        logger.warning(f"{e.operation or 'request'} failed, continuing with partial result: {e}")
        if errors is not None:
            errors.append(e)
        return fallback


def walk_pages(
    fetch_page: PageFetch,
    page_size: int,
    max_pages: Optional[int] = None,
    policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    errors: Optional[List[SpotifetchError]] = None,
    operation: str = "pages",
) -> Iterator[Page]:
    """
    Lazily walk every page of a paging endpoint

    Args:
        fetch_page: Called as fetch_page(cursor, offset). The first call is
                    (None, 0); later calls pass the previous page's next link
                    and the offset that page should start at. The offset is
                    what the fetcher uses when the cursor is missing, which
                    happens after a failed page under the best-effort policy.
        page_size: Provider page size for this endpoint family
        max_pages: Stop after this many pages; falsy means no cap
        policy: Failure policy for individual page requests
        errors: List that absorbed errors are appended to
        operation: Name used in log messages

    Yields:
        Raw Page objects in order
    """
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")

    progress = create_operation_logger(__name__, operation)
    progress.start()

    first = _fetch_or_degrade(lambda: fetch_page(None, 0), policy, errors, Page.empty())
    yield first

    total_pages = ceil_div(first.total, page_size)
    progress.progress("page fetched", 1, total_pages)
    cursor = first.next

    for index in range(2, total_pages + 1):
        # Page cap truncates the walk; a partial result here is intended
        if max_pages and index > max_pages:
            logger.debug(f"{operation}: page cap {max_pages} reached, {total_pages} pages available")
            break

        offset = (index - 1) * page_size
        page = _fetch_or_degrade(
            lambda: fetch_page(cursor, offset), policy, errors, Page.empty()
        )
        yield page

        progress.progress("page fetched", index, total_pages)
        cursor = page.next

    progress.complete()


class PaginatedFetcher:
    """
    Walks a paging endpoint and formats every item

    Combines walk_pages() with a per-item formatter. The formatter defaults to
    identity; a formatter that raises is reported as a FormatError on the
    result and the offending item is skipped, so one odd item never ends a
    walk.

    Example:
        fetcher = PaginatedFetcher(fetch_page, TRACK_PAGE_SIZE, formatter=format_track)
        result = fetcher.fetch_all()
        tracks = result.items
    """

    def __init__(
        self,
        fetch_page: PageFetch,
        page_size: int,
        formatter: Optional[Formatter] = None,
        max_pages: Optional[int] = None,
        policy: Union[FailurePolicy, str, None] = FailurePolicy.FAIL_FAST,
        operation: str = "pages",
    ):
        self.fetch_page = fetch_page
        self.page_size = page_size
        self.formatter = formatter
        self.max_pages = max_pages
        self.policy = FailurePolicy.parse(policy)
        self.operation = operation

    def walk(self, errors: Optional[List[SpotifetchError]] = None) -> Iterator[Page]:
        """Lazy sequence of raw pages"""
        return walk_pages(
            self.fetch_page,
            self.page_size,
            max_pages=self.max_pages,
            policy=self.policy,
            errors=errors,
            operation=self.operation,
        )

    def fetch_all(self) -> FetchResult:
        """
        Walk every page and accumulate formatted items

        Returns:
            FetchResult with items in provider order across the whole walk

        Raises:
            PageFetchError: Under the fail-fast policy, when any page request fails
        """
        result = FetchResult()
        for page in self.walk(result.errors):
            result.requests += 1
            for item in page.items:
                self._append(result, item)

        if not result.complete:
            logger.warning(
                f"{self.operation}: partial result, {len(result.items)} items "
                f"with {len(result.errors)} errors"
            )
        return result

    def _append(self, result: FetchResult, item: Any) -> None:
        if self.formatter is None:
            result.items.append(item)
            return
        try:
            result.items.append(self.formatter(item))
        except Exception as e:
            logger.warning(f"{self.operation}: skipping item that could not be formatted: {e}")
            result.errors.append(FormatError(
                f"Formatter failed: {e}",
                details={'operation': self.operation, 'original_error': str(e)}
            ))


class BatchChunker:
    """
    Secondary batch enrichment

    Splits identifiers into contiguous groups of at most batch_size (never
    more than 100) and issues one request per group through fetch_batch,
    which receives the group and returns the decoded response body. The
    records are read from response[result_key].

    fetch_all() concatenates records positionally, preserving group order and
    within-group order. fetch_by_id() keys records by their identifier, which
    stays correct when a group fails or the provider reorders a response.
    """

    def __init__(
        self,
        fetch_batch: Callable[[List[str]], Dict[str, Any]],
        result_key: str,
        batch_size: int = MAX_BATCH_SIZE,
        policy: Union[FailurePolicy, str, None] = FailurePolicy.FAIL_FAST,
        operation: str = "batch",
    ):
        if batch_size <= 0 or batch_size > MAX_BATCH_SIZE:
            raise ConfigError(
                f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}"
            )
        self.fetch_batch = fetch_batch
        self.result_key = result_key
        self.batch_size = batch_size
        self.policy = FailurePolicy.parse(policy)
        self.operation = operation

    def batches(self, ids: Sequence[str], errors: Optional[List[SpotifetchError]] = None) -> Iterator[List[Any]]:
        """
        Lazy sequence of per-group record lists

        A failed group yields an empty list under the best-effort policy.
        """
        for group in chunked(list(ids), self.batch_size):
            body = _fetch_or_degrade(
                lambda: self.fetch_batch(group), self.policy, errors, {}
            )
            records = (body or {}).get(self.result_key) or []
            yield list(records) if isinstance(records, list) else []

    def fetch_all(self, ids: Sequence[str]) -> FetchResult:
        """
        Concatenate every group's records in input order

        Returns:
            FetchResult whose items line up with ids only when result.complete
        """
        result = FetchResult()
        for records in self.batches(ids, result.errors):
            result.requests += 1
            result.items.extend(records)

        if not result.complete:
            logger.warning(
                f"{self.operation}: {len(result.errors)} of {result.requests} batches failed, "
                f"positional alignment with the input is lost"
            )
        return result

    def fetch_by_id(self, ids: Sequence[str], key: str = 'id') -> Dict[str, Any]:
        """
        Key every returned record by its identifier

        Null records (unknown ids) are dropped.

        Returns:
            Mapping of identifier to record
        """
        keyed = {}
        for record in self.fetch_all(ids).items:
            if isinstance(record, dict) and record.get(key):
                keyed[record[key]] = record
        return keyed


def merge_by_id(
    records: Sequence[Dict[str, Any]],
    enrichment: Dict[str, Dict[str, Any]],
    key: str = 'id',
) -> List[Dict[str, Any]]:
    """
    Merge enrichment records into primary records by identifier

    Keys already present on a primary record win over enrichment keys with
    the same name, except the shared identifier itself.

    Args:
        records: Primary records (dicts carrying `key`)
        enrichment: Mapping of identifier to enrichment record
        key: Identifier field name

    Returns:
        New list of merged dicts in the order of `records`
    """
    merged = []
    for record in records:
        extra = enrichment.get(record.get(key)) if record.get(key) else None
        if extra:
            merged.append({**extra, **record})
        else:
            merged.append(dict(record))
    return merged
