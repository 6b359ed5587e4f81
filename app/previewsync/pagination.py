"""
Cursor pagination over backend listings.
"""
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int, Optional[str]], List[Dict[str, Any]]]


class CursorPager:
    """
    Lazy, restartable iterable over every item of a listing.

    Each iteration starts from the beginning and asks ``fetch_page(limit, cursor)``
    for consecutive pages, using the last item's '$id' as the cursor. Iteration
    ends on an empty page or a page shorter than ``page_size``.
    """

    def __init__(self, fetch_page: PageFetcher, page_size: int = 100, name: str = "listing"):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.fetch_page = fetch_page
        self.page_size = page_size
        self.name = name

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        cursor = None
        pages = 0
        while True:
            page = self.fetch_page(self.page_size, cursor)
            pages += 1
            yield from page
            if len(page) < self.page_size:
                break
            cursor = page[-1]["$id"]
        logger.debug(f"Read {pages} page(s) of {self.name}")
