"""Sequential continuation-link pagination for both backends."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.models.api_call import ApiCallRequest
from app.services.microsoft_api.backend import BackendExecutor
from app.services.microsoft_api.exceptions import ApiCallError, PaginationError
from app.services.microsoft_api.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class PageAccumulator:
    """Items collected so far plus the cursor for the next page."""
    items: List[Any] = field(default_factory=list)
    next_link: Optional[str] = None
    context: Optional[str] = None
    pages: int = 0

    def add_page(self, items: List[Any], next_link: Optional[str]) -> None:
        self.items.extend(items)
        self.next_link = next_link
        self.pages += 1


class Paginator:
    """Walks a collection page by page through a BackendExecutor.

    Pages are fetched strictly one at a time, each with its own retry budget.
    If any page ultimately fails the accumulator is discarded and a
    PaginationError is raised; partial results are never returned.
    """

    def __init__(self, executor: BackendExecutor, retry_policy: RetryPolicy):
        self.executor = executor
        self.retry_policy = retry_policy

    async def _fetch(self, request: ApiCallRequest, next_link: Optional[str], page_number: int) -> Dict[str, Any]:
        async def fetch_page():
            return await self.executor.fetch_page(request, next_link)

        try:
            return await self.retry_policy.run(
                fetch_page,
                description=f"{self.executor.display_name} page {page_number}",
            )
        except ApiCallError as e:
            logger.error(f"Pagination error on page {page_number} for {request.path}: {e.message}")
            raise PaginationError(page_number, e) from e

    async def fetch_all(self, request: ApiCallRequest) -> Dict[str, Any]:
        """Fetch every page of ``request`` and fold them into one collection payload."""
        accumulator = PageAccumulator()

        first_page = await self._fetch(request, None, 1)
        accumulator.context = self.executor.page_context(first_page)
        accumulator.add_page(
            self.executor.page_items(first_page, first=True),
            self.executor.follow_continuation(first_page),
        )

        while accumulator.next_link:
            page_number = accumulator.pages + 1
            logger.info(f"Fetching page {page_number} for {request.path} ({len(accumulator.items)} items so far)")
            page = await self._fetch(request, accumulator.next_link, page_number)
            accumulator.add_page(
                self.executor.page_items(page, first=False),
                self.executor.follow_continuation(page),
            )

        logger.info(f"Fetched {len(accumulator.items)} items across {accumulator.pages} page(s) for {request.path}")
        return self.executor.finalize(accumulator.items, accumulator.context)
