"""Object store factory with a short-lived per-instance client cache."""

from typing import Callable, Dict, Optional

from cachetools import TTLCache

from ..config.manager import InstanceManager
from ..config.schema import StoreInstance
from ..config.settings import BucketSyncSettings, get_settings
from ..utils.logging import get_logger
from .base import ObjectStore
from .s3 import S3ObjectStore


StoreBuilder = Callable[[StoreInstance], ObjectStore]


class ObjectStoreFactory:
    """Creates object stores for persisted store instances.

    Built stores are cached per instance id for a limited time so that
    repeated syncs against the same endpoint reuse one client.
    """

    def __init__(
        self,
        instance_manager: InstanceManager,
        settings: Optional[BucketSyncSettings] = None,
        builder: StoreBuilder = S3ObjectStore.from_instance
    ):
        settings = settings or get_settings()
        self.instance_manager = instance_manager
        self.builder = builder
        self._clients: TTLCache = TTLCache(
            maxsize=settings.cache.client_cache_size,
            ttl=settings.cache.client_cache_ttl_seconds,
        )
        self._overrides: Dict[str, ObjectStore] = {}
        self.logger = get_logger(self.__class__.__name__)

    def get_store(self, instance_id: str) -> ObjectStore:
        """Return the store for ``instance_id``.

        Raises:
            NotFoundError: If no such instance is configured
        """
        if instance_id in self._overrides:
            return self._overrides[instance_id]

        store = self._clients.get(instance_id)
        if store is not None:
            return store

        instance = self.instance_manager.get(instance_id)
        store = self.builder(instance)
        self._clients[instance_id] = store
        self.logger.info(
            "Object store created",
            instance_id=instance_id,
            endpoint=instance.endpoint_url or "aws",
            region=instance.region
        )
        return store

    def register_store(self, instance_id: str, store: ObjectStore):
        """Pin a pre-built store for an instance id.

        Args:
            instance_id: Store instance id
            store: Store returned for that id from now on
        """
        self._overrides[instance_id] = store

    def clear(self):
        """Drop cached clients; they are rebuilt on next use."""
        self._clients.clear()
        self.logger.debug("Object store cache cleared")
