"""Configuration package: settings, persisted plans and store instances."""

from .settings import (
    LoggingSettings,
    ListingSettings,
    TransferSettings,
    StorageSettings,
    CacheSettings,
    BucketSyncSettings,
    get_settings,
    reload_settings
)

from .schema import (
    SyncPlan,
    StoreInstance,
    ImportFile
)

from .document_store import JsonDocumentStore

from .loader import ConfigLoader

from .manager import (
    SyncPlanManager,
    InstanceManager,
    PLANS_STORAGE_KEY,
    INSTANCES_STORAGE_KEY
)

__all__ = [
    # Settings
    "LoggingSettings",
    "ListingSettings",
    "TransferSettings",
    "StorageSettings",
    "CacheSettings",
    "BucketSyncSettings",
    "get_settings",
    "reload_settings",

    # Persisted records
    "SyncPlan",
    "StoreInstance",
    "ImportFile",
    "JsonDocumentStore",
    "ConfigLoader",
    "SyncPlanManager",
    "InstanceManager",
    "PLANS_STORAGE_KEY",
    "INSTANCES_STORAGE_KEY",
]
