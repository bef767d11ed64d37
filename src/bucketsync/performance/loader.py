"""Cached, single-flight async loader keyed by a structural hash of its parameters."""

import asyncio
import copy
import hashlib
import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from cachetools import LRUCache
from pydantic import BaseModel

from ..errors import CacheMiss
from ..utils.logging import get_logger


P = TypeVar('P')
R = TypeVar('R')


def _canonical(value: Any) -> Any:
    """Reduce ``value`` to plain JSON data, keeping types ``==`` tells apart.

    Supported: None, bool, int, float, str, enums, pydantic models,
    dataclasses, dicts with string keys, lists, tuples and sets. Tuples and
    sets are tagged so they never collide with an equal-looking list.
    """
    if isinstance(value, Enum):
        return _canonical(value.value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if is_dataclass(value) and not isinstance(value, type):
        return _canonical(asdict(value))
    if isinstance(value, dict):
        if not all(isinstance(k, str) for k in value):
            raise TypeError("Loader parameters need string dict keys")
        return {k: _canonical(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_canonical(v) for v in value]
    if isinstance(value, tuple):
        return {"__tuple__": [_canonical(v) for v in value]}
    if isinstance(value, (set, frozenset)):
        items = [_canonical(v) for v in value]
        return {"__set__": sorted(items, key=lambda item: json.dumps(item, sort_keys=True))}
    raise TypeError(f"Unsupported loader parameter type: {type(value).__name__}")


def params_hash(params: Any) -> str:
    """Stable hash of a parameter value, equal for structurally equal values.

    Raises:
        TypeError: For values outside the types ``_canonical`` supports
    """
    encoded = json.dumps(_canonical(params), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class LoaderState(str, Enum):
    """Loader lifecycle."""
    IDLE = "idle"
    FETCHING = "fetching"
    SETTLED = "settled"


class CachedAsyncLoader(Generic[P, R]):
    """Fetches a value for a parameter with caching and one fetch in flight.

    ``update`` reacts to parameter changes: a value structurally equal to
    the current one is ignored, a cached value is used without fetching,
    anything else is fetched. ``refresh`` always fetches. Fetches queue
    FIFO behind a one-slot gate. A fetch result is shown in ``data`` only if
    its parameters are still current; it is cached either way. Failures
    propagate and leave cache and data untouched.
    """

    def __init__(
        self,
        fetcher: Callable[[P], Awaitable[R]],
        cache: Optional[LRUCache] = None,
        single_flight: bool = True,
        name: Optional[str] = None
    ):
        """Initialize the loader.

        Args:
            fetcher: Async callable producing the value for a parameter
            cache: Optional LRU cache shared between loaders
            single_flight: Queue fetches behind a one-slot gate
            name: Label used in log records
        """
        self.fetcher = fetcher
        self.cache = cache
        self.gate = asyncio.Semaphore(1) if single_flight else None
        self.name = name or getattr(fetcher, "__name__", "loader")

        self.state = LoaderState.IDLE
        self.data: Optional[R] = None
        self.params: Optional[P] = None
        self.data_params_key: Optional[str] = None
        self.fetch_count = 0
        self._in_flight = 0

        self.logger = get_logger(self.__class__.__name__)

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    def _lookup(self, key: str) -> R:
        if self.cache is None or key not in self.cache:
            raise CacheMiss(key)
        return self.cache[key]

    def _settle(self):
        if self._in_flight == 0:
            self.state = LoaderState.SETTLED if self.data_params_key is not None else LoaderState.IDLE

    async def update(self, params: P) -> Optional[R]:
        """Observe a new parameter value.

        Returns:
            The value displayed after the update has been handled
        """
        snapshot = copy.deepcopy(params)
        key = params_hash(snapshot)
        if snapshot == self.params and (self.is_loading or key == self.data_params_key):
            self.logger.debug("Parameters unchanged, skipping fetch", loader=self.name)
            return self.data

        self.params = snapshot

        try:
            self.data = self._lookup(key)
        except CacheMiss:
            return await self._fetch(snapshot)

        self.data_params_key = key
        self._settle()
        self.logger.debug("Cache hit", loader=self.name, key=key)
        return self.data

    async def refresh(self, params: Optional[P] = None) -> Optional[R]:
        """Fetch again regardless of cache contents.

        Args:
            params: Optionally switch to these parameters first
        """
        if params is not None:
            self.params = copy.deepcopy(params)
        elif self.state == LoaderState.IDLE and self.params is None:
            raise ValueError("refresh() needs parameters before the first update")
        return await self._fetch(self.params)

    async def _fetch(self, params: P) -> Optional[R]:
        self._in_flight += 1
        self.state = LoaderState.FETCHING
        try:
            if self.gate is not None:
                async with self.gate:
                    result = await self._run_fetcher(params)
            else:
                result = await self._run_fetcher(params)
        except BaseException:
            self._in_flight -= 1
            self._settle()
            raise
        self._in_flight -= 1

        key = params_hash(params)
        if self.cache is not None:
            self.cache[key] = result

        if params == self.params:
            self.data = result
            self.data_params_key = key
        else:
            self.logger.debug("Discarding superseded result for display", loader=self.name)

        self._settle()
        return self.data

    async def _run_fetcher(self, params: P) -> R:
        self.fetch_count += 1
        self.logger.debug("Fetching", loader=self.name, fetch_number=self.fetch_count)
        try:
            return await self.fetcher(params)
        except Exception as e:
            self.logger.warning("Fetch failed", loader=self.name, error=str(e))
            raise
