"""
Query Collector

Wraps a pending multi-record fetch, such as ``User().all()``, and offers
bulk helpers over its result. The fetch runs once; every helper shares its
result.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueryCollector(Generic[T]):
    """Lazy wrapper over an awaitable list of records"""

    def __init__(self, query: Awaitable[List[T]]):
        self._query = query
        self._future: Optional[asyncio.Future] = None

    async def _items(self) -> List[T]:
        if self._future is None:
            self._future = asyncio.ensure_future(self._query)
        return await self._future

    async def items(self) -> List[T]:
        return list(await self._items())

    async def items_as_resource(self) -> List[Dict[str, Any]]:
        """The items as plain dicts of their persisted fields"""
        return [item.resource() for item in await self._items()]

    async def count(self) -> int:
        return len(await self._items())

    async def each(self, callback: Callable[[T], Any]) -> None:
        """Call ``callback`` for every item in order, awaiting coroutine results"""
        for item in await self._items():
            result = callback(item)
            if inspect.isawaitable(result):
                await result

    async def delete(self) -> bool:
        """
        Delete every item.

        Returns:
            True only if every delete succeeded; later items are still
            deleted after a failed one
        """
        result = True

        for item in await self._items():
            result = (await item.delete()) and result

        logger.debug(f"Collector delete finished with result {result}")
        return result


def collect(query: Awaitable[List[T]]) -> QueryCollector[T]:
    return QueryCollector(query)
