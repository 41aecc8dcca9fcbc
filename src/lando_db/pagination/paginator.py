from __future__ import annotations

import structlog

from lando_db.errors import InvalidPageSize, PageOutOfRange
from lando_db.models.domain import ResultPage
from lando_db.pagination.sources import ResultSource

logger = structlog.get_logger()

MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 1000


def validate_page_size(page_size: int) -> None:
    if not MIN_PAGE_SIZE <= page_size <= MAX_PAGE_SIZE:
        raise InvalidPageSize(page_size, MIN_PAGE_SIZE, MAX_PAGE_SIZE)


async def paginate(source: ResultSource, page_index: int, page_size: int) -> ResultPage:
    """Fetch one page from ``source``.

    Stateless: nothing is cached between calls. With a known total, asking
    for a page whose offset lies past the end raises PageOutOfRange. With an
    unknown total an exhausted source simply yields an empty page.
    """
    validate_page_size(page_size)
    if page_index < 0:
        raise ValueError(f"Page index must be >= 0, got {page_index}")

    offset = page_index * page_size
    total = await source.total()
    if total is not None and offset > total:
        raise PageOutOfRange(page_index, page_size, total)

    rows = await source.fetch(offset, page_size)
    logger.debug(
        "page_fetched",
        page_index=page_index,
        page_size=page_size,
        row_count=len(rows),
        total=total,
    )
    return ResultPage(
        rows=rows[:page_size],
        columns=list(source.columns),
        page_index=page_index,
        page_size=page_size,
        total=total,
    )
