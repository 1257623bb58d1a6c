"""Fetch memoization keyed by canonical endpoint signature.

At most one fetch is in flight per signature; late arrivals await the same
future and receive the same outcome, success or failure. A cache lives for one
install invocation.
"""

import asyncio
import logging

from .endpoints import Endpoint
from .exceptions import BowerError
from .exceptions import FetchError
from .protocols import EndpointFetcherProtocol
from .protocols import FetchResult

logger = logging.getLogger(__name__)


class FetchCache:
    """
    Shared map from endpoint signature to a single in-progress/completed fetch.

    Example:
        >>> cache = FetchCache(fetcher, proxy="http://proxy.local/")
        >>> a, b = await asyncio.gather(cache.fetch(endpoint), cache.fetch(endpoint))
        >>> assert a is b and cache.fetch_count == 1
    """

    def __init__(self, fetcher: EndpointFetcherProtocol, proxy: str | None = None):
        self.fetcher = fetcher
        self.proxy = proxy
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def fetch_count(self) -> int:
        """Number of distinct fetches started."""
        return len(self._tasks)

    async def fetch(self, endpoint: Endpoint) -> FetchResult:
        key = endpoint.signature
        task = self._tasks.get(key)
        if task is None:
            logger.debug(f"Fetching {key}")
            task = asyncio.ensure_future(self._fetch(endpoint))
            self._tasks[key] = task
        else:
            logger.debug(f"Sharing fetch of {key}")

        # Shield so one cancelled waiter does not cancel the fetch for the others
        return await asyncio.shield(task)

    async def _fetch(self, endpoint: Endpoint) -> FetchResult:
        try:
            return await self.fetcher.fetch(endpoint, proxy=self.proxy)
        except BowerError:
            raise
        except Exception as e:
            raise FetchError(
                f"Failed to fetch {endpoint.signature}: {e}",
                context={"endpoint": endpoint.signature},
            ) from e

    async def cancel(self) -> None:
        """Cancel every unfinished fetch and wait for them to settle."""
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.debug(f"Cancelled {len(pending)} in-flight fetches")
