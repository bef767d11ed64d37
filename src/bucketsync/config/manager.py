"""Owners of the persisted sync plan and store instance collections."""

from typing import Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from .document_store import JsonDocumentStore
from .schema import StoreInstance, SyncPlan
from ..errors import ConfigValidationError, NotFoundError, PlanConflictError
from ..utils.logging import get_logger, log_execution_time


PLANS_STORAGE_KEY = "s3-sync-plans"
INSTANCES_STORAGE_KEY = "s3-instances"

M = TypeVar("M", bound=BaseModel)


class _CollectionManager(Generic[M]):
    """Single writer for one validated list document.

    The collection is never mutated in place: each change builds a new
    tuple and persists it.
    """

    storage_key: str = ""
    model: Type[BaseModel] = BaseModel

    def __init__(self, document_store: JsonDocumentStore):
        self.store = document_store
        self.logger = get_logger(self.__class__.__name__)
        self._items: Tuple[M, ...] = ()
        self._loaded = False
        self._adapter = TypeAdapter(List[self.model])

    def _record_id(self, item: M) -> str:
        raise NotImplementedError

    def _to_document(self, item: M) -> dict:
        return item.to_document()

    def decode(self, data) -> List[M]:
        """Validate raw document data.

        Raises:
            ConfigValidationError: If the data does not match the schema
        """
        if data is None:
            return []
        try:
            items = self._adapter.validate_python(data)
        except ValidationError as e:
            raise ConfigValidationError(self.storage_key, str(e))

        ids = [self._record_id(item) for item in items]
        if len(ids) != len(set(ids)):
            raise ConfigValidationError(self.storage_key, "duplicate ids")
        return items

    @log_execution_time
    def load(self) -> Tuple[M, ...]:
        """Load the collection, falling back to empty on malformed data."""
        try:
            items = self.decode(self.store.get(self.storage_key))
        except ConfigValidationError as e:
            self.logger.warning(
                "Persisted collection failed validation, using empty collection",
                key=self.storage_key,
                error=e.reason
            )
            items = []

        self._items = tuple(items)
        self._loaded = True
        self.logger.info("Collection loaded", key=self.storage_key, count=len(self._items))
        return self._items

    def _ensure_loaded(self):
        if not self._loaded:
            self.load()

    @property
    def items(self) -> Tuple[M, ...]:
        self._ensure_loaded()
        return self._items

    def find(self, record_id: str) -> Optional[M]:
        return next((item for item in self.items if self._record_id(item) == record_id), None)

    def _replace(self, items: Tuple[M, ...]) -> None:
        self.store.set(self.storage_key, [self._to_document(item) for item in items])
        self.store.save()
        self._items = items

    def add(self, item: M) -> M:
        """Append a record and persist.

        Raises:
            PlanConflictError: If a record with the same id exists
        """
        record_id = self._record_id(item)
        if self.find(record_id) is not None:
            raise PlanConflictError(f"Record with id {record_id} already exists in {self.storage_key}")

        self._replace(self.items + (item,))
        self.logger.info("Record added", key=self.storage_key, record_id=record_id)
        return item

    def delete(self, record_id: str) -> bool:
        """Remove a record by id and persist. Returns False if it was absent."""
        remaining = tuple(item for item in self.items if self._record_id(item) != record_id)
        if len(remaining) == len(self.items):
            return False

        self._replace(remaining)
        self.logger.info("Record deleted", key=self.storage_key, record_id=record_id)
        return True

    def replace_all(self, items: List[M]) -> None:
        """Swap in a whole new collection and persist."""
        ids = [self._record_id(item) for item in items]
        if len(ids) != len(set(ids)):
            raise PlanConflictError(f"Duplicate ids in new {self.storage_key} collection")
        self._replace(tuple(items))


class SyncPlanManager(_CollectionManager[SyncPlan]):
    """Owns the persisted SyncPlan collection."""

    storage_key = PLANS_STORAGE_KEY
    model = SyncPlan

    def _record_id(self, item: SyncPlan) -> str:
        return item.id

    @property
    def plans(self) -> Tuple[SyncPlan, ...]:
        return self.items

    def get(self, plan_id: str) -> SyncPlan:
        plan = self.find(plan_id)
        if plan is None:
            raise NotFoundError(f"Sync plan not found: {plan_id}")
        return plan


class InstanceManager(_CollectionManager[StoreInstance]):
    """Owns the persisted store instance (endpoint + credentials) collection."""

    storage_key = INSTANCES_STORAGE_KEY
    model = StoreInstance

    def _record_id(self, item: StoreInstance) -> str:
        return item.instance_id

    @property
    def instances(self) -> Tuple[StoreInstance, ...]:
        return self.items

    def get(self, instance_id: str) -> StoreInstance:
        instance = self.find(instance_id)
        if instance is None:
            raise NotFoundError(f"Store instance not found: {instance_id}")
        return instance
