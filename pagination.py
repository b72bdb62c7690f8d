import math
from dataclasses import dataclass
from typing import Optional, Union

LATEST = "latest"

PageRequest = Union[int, str, None]


@dataclass(frozen=True, slots=True)
class PageWindow:
    offset: int
    limit: Optional[int]  # None: no windowing, take everything
    page: int = 1  # 1-based page actually served
    page_count: int = 1


def page_count(total_count: int, page_size: Optional[int]) -> int:
    if not page_size or page_size <= 0:
        return 1
    return max(math.ceil(total_count / page_size), 1)


def compute_window(total_count: int, page_size: Optional[int], requested_page: PageRequest = None) -> PageWindow:
    """Translate a page request into an offset/limit pair over an ordered collection.

    ``requested_page`` is a 1-based page number (digit strings are accepted, as
    they arrive from query strings), the sentinel ``"latest"`` for the last page,
    or ``None`` for the first page. Pages past the end are capped at one page
    beyond the last, which is empty. A ``page_size`` of 0 or ``None`` disables
    windowing.
    """
    if not page_size or page_size <= 0:
        return PageWindow(offset=0, limit=None)

    pages = page_count(total_count, page_size)

    if requested_page == LATEST:
        index = math.ceil(total_count / page_size) - 1
    elif isinstance(requested_page, int) and not isinstance(requested_page, bool):
        index = requested_page - 1
    elif isinstance(requested_page, str) and requested_page.strip().isdecimal():
        index = int(requested_page) - 1
    else:
        index = 0

    index = min(max(index, 0), pages)
    return PageWindow(offset=index * page_size, limit=page_size, page=index + 1, page_count=pages)
