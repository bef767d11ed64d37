"""Sync engine orchestrating scan, listing, diff and execution for a sync plan."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from cachetools import LRUCache

from ..config.manager import InstanceManager, SyncPlanManager
from ..config.schema import SyncPlan
from ..config.settings import BucketSyncSettings, get_settings
from ..errors import BucketSyncError, SyncCancelledError
from ..local.scanner import LocalTreeScanner
from ..models import ActionKind, ExecutionReport, ObjectEntry, SyncAction, SyncDirection
from ..performance.loader import CachedAsyncLoader
from ..remote.factory import ObjectStoreFactory
from ..remote.lister import RemoteObjectLister, normalize_prefix
from ..utils.logging import get_logger, log_async_execution_time
from .diff_engine import DiffEngine, summarize
from .executor import ExecutionController, ProgressCallback, SyncActionRunner


@dataclass
class SyncResult:
    """Result of syncing one plan."""

    plan_id: str
    direction: SyncDirection
    actions: List[SyncAction]
    report: Optional[ExecutionReport] = None
    dry_run: bool = False
    skipped_subtrees: List[str] = field(default_factory=list)
    sync_duration: Optional[float] = None

    @property
    def summary(self) -> Dict[str, int]:
        return summarize(self.actions)

    @property
    def success(self) -> bool:
        return self.report is None or not self.report.has_failures

    @property
    def changes(self) -> List[SyncAction]:
        """Actions other than Skip."""
        return [a for a in self.actions if a.kind != ActionKind.SKIP]


@dataclass
class SyncStats:
    """Statistics for syncing several plans."""

    total_plans: int
    successful_syncs: int
    failed_syncs: int
    total_actions: int
    total_duration: float

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage."""
        if self.total_plans == 0:
            return 0.0
        return (self.successful_syncs / self.total_plans) * 100


class SyncEngine:
    """Runs sync plans against their object stores."""

    def __init__(
        self,
        plan_manager: SyncPlanManager,
        instance_manager: InstanceManager,
        store_factory: Optional[ObjectStoreFactory] = None,
        settings: Optional[BucketSyncSettings] = None,
        trash_func: Optional[Callable[[str], None]] = None
    ):
        """Initialize sync engine.

        Args:
            plan_manager: Owner of the persisted sync plans
            instance_manager: Owner of the persisted store instances
            store_factory: Factory for object stores, built from instance_manager if omitted
            settings: Application settings
            trash_func: Replacement for the OS trash call
        """
        self.settings = settings or get_settings()
        self.plan_manager = plan_manager
        self.instance_manager = instance_manager
        self.store_factory = store_factory or ObjectStoreFactory(instance_manager, self.settings)
        self.trash_func = trash_func

        self.diff_engine = DiffEngine()
        self.lister = RemoteObjectLister(
            page_delay=self.settings.listing.page_delay_seconds,
            exclude_prefixes=[self.settings.listing.remote_trash_prefix],
        )
        self._listing_cancel_event: Optional[asyncio.Event] = None
        self.listing_loader: CachedAsyncLoader[Dict[str, str], Dict[str, ObjectEntry]] = CachedAsyncLoader(
            self._fetch_listing,
            cache=LRUCache(maxsize=self.settings.cache.listing_cache_size),
            name="remote_listing",
        )
        self.logger = get_logger(self.__class__.__name__)

        self.logger.info("Sync engine initialized")

    def _listing_params(self, plan: SyncPlan) -> Dict[str, str]:
        store = self.store_factory.get_store(plan.store_instance_id)
        return {
            "instance_id": plan.store_instance_id,
            "endpoint": store.endpoint,
            "bucket": plan.bucket,
            "prefix": normalize_prefix(plan.remote_dir),
        }

    async def _fetch_listing(self, params: Dict[str, str]) -> Dict[str, ObjectEntry]:
        store = self.store_factory.get_store(params["instance_id"])
        return await self.lister.list(
            store, params["bucket"], params["prefix"], cancel_event=self._listing_cancel_event
        )

    async def list_remote(
        self,
        plan: SyncPlan,
        use_cached_listing: bool = False,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Dict[str, ObjectEntry]:
        """List the plan's remote side, optionally from the listing cache.

        Raises:
            SyncCancelledError: If ``cancel_event`` is set before the listing ends
        """
        params = self._listing_params(plan)
        self._listing_cancel_event = cancel_event
        try:
            if use_cached_listing:
                listing = await self.listing_loader.update(params)
                if listing is not None:
                    return listing
            return await self.listing_loader.refresh(params)
        finally:
            self._listing_cancel_event = None

    async def _compute_actions(
        self,
        plan: SyncPlan,
        direction: SyncDirection,
        use_cached_listing: bool,
        cancel_event: Optional[asyncio.Event] = None
    ):
        scanner = LocalTreeScanner()
        listing = asyncio.ensure_future(self.list_remote(plan, use_cached_listing, cancel_event))
        try:
            local = await scanner.scan(Path(plan.local_dir).expanduser())
        except BaseException:
            listing.cancel()
            await asyncio.gather(listing, return_exceptions=True)
            raise
        remote = await listing
        actions = self.diff_engine.diff(local, remote, direction)
        return actions, [error.path for error in scanner.skipped]

    @log_async_execution_time
    async def sync_plan(
        self,
        plan: SyncPlan,
        direction: SyncDirection,
        concurrency_limit: Optional[int] = None,
        dry_run: bool = False,
        use_cached_listing: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> SyncResult:
        """Bring both sides of ``plan`` into agreement.

        Args:
            plan: Sync plan to run
            direction: Which side is authoritative
            concurrency_limit: Simultaneous actions, from settings if omitted
            dry_run: Compute actions without executing them
            use_cached_listing: Reuse a cached remote listing when present
            cancel_event: Aborts the listing between pages and stops actions
                that have not started yet
            on_progress: Called with each action outcome

        Returns:
            SyncResult with the planned actions and the execution report

        Raises:
            NotFoundError: If the local directory or store instance is missing
            RemoteListError: If the remote listing fails
            SyncCancelledError: If cancelled while listing the remote side
        """
        direction = SyncDirection(direction)
        limit = concurrency_limit or self.settings.transfer.concurrency_limit
        if limit < 1:
            raise SyncEngineError(f"Invalid concurrency limit: {limit}")

        start_time = datetime.now()
        self.logger.info(
            "Starting sync for plan",
            plan_id=plan.id,
            bucket=plan.bucket,
            remote_dir=plan.remote_dir,
            local_dir=plan.local_dir,
            direction=direction.value,
            dry_run=dry_run
        )

        actions, skipped_subtrees = await self._compute_actions(
            plan, direction, use_cached_listing, cancel_event
        )
        result = SyncResult(
            plan_id=plan.id,
            direction=direction,
            actions=actions,
            dry_run=dry_run,
            skipped_subtrees=skipped_subtrees,
        )

        if not dry_run:
            store = self.store_factory.get_store(plan.store_instance_id)
            runner = SyncActionRunner(
                local_root=Path(plan.local_dir).expanduser(),
                bucket=plan.bucket,
                prefix=normalize_prefix(plan.remote_dir),
                store=store,
                remote_trash_prefix=self.settings.listing.remote_trash_prefix,
                trash_func=self.trash_func,
                chunk_size=self.settings.transfer.chunk_size,
            )
            controller = ExecutionController(
                runner,
                retry_delay=self.settings.transfer.retry_delay_seconds,
                cancel_event=cancel_event,
                on_progress=on_progress,
            )
            result.report = await controller.execute(actions, concurrency_limit=limit)
            if result.changes:
                await self._refresh_listing(plan)

        result.sync_duration = (datetime.now() - start_time).total_seconds()

        self.logger.info(
            "Sync completed for plan",
            plan_id=plan.id,
            success=result.success,
            duration=f"{result.sync_duration:.2f}s",
            **result.summary
        )
        return result

    async def _refresh_listing(self, plan: SyncPlan):
        try:
            await self.listing_loader.refresh(self._listing_params(plan))
        except BucketSyncError as e:
            self.logger.warning("Listing refresh after sync failed", plan_id=plan.id, error=str(e))

    async def preview(self, plan: SyncPlan, direction: SyncDirection) -> List[SyncAction]:
        """Actions a sync would perform, without performing them."""
        result = await self.sync_plan(plan, direction, dry_run=True)
        return result.actions

    async def verify(self, plan: SyncPlan, direction: SyncDirection) -> List[SyncAction]:
        """Re-scan and re-list; an empty result means both sides agree."""
        actions, _ = await self._compute_actions(plan, SyncDirection(direction), use_cached_listing=False)
        return [a for a in actions if a.kind != ActionKind.SKIP]

    async def sync_plan_by_id(self, plan_id: str, direction: SyncDirection, **kwargs: Any) -> SyncResult:
        """Look up a persisted plan and sync it."""
        return await self.sync_plan(self.plan_manager.get(plan_id), direction, **kwargs)

    @log_async_execution_time
    async def sync_all_plans(self, direction: SyncDirection, **kwargs: Any) -> SyncStats:
        """Sync every persisted plan, one after another.

        A failing plan is counted and logged; the remaining plans still run.
        """
        start_time = datetime.now()
        plans = self.plan_manager.plans

        if not plans:
            self.logger.warning("No sync plans configured")
            return SyncStats(0, 0, 0, 0, 0.0)

        successful_syncs = 0
        failed_syncs = 0
        total_actions = 0

        for plan in plans:
            try:
                result = await self.sync_plan(plan, direction, **kwargs)
            except SyncCancelledError:
                raise
            except BucketSyncError as e:
                failed_syncs += 1
                self.logger.error("Sync failed for plan", plan_id=plan.id, error=str(e))
                continue

            total_actions += len(result.changes)
            if result.success:
                successful_syncs += 1
            else:
                failed_syncs += 1

        stats = SyncStats(
            total_plans=len(plans),
            successful_syncs=successful_syncs,
            failed_syncs=failed_syncs,
            total_actions=total_actions,
            total_duration=(datetime.now() - start_time).total_seconds(),
        )

        self.logger.info(
            "Completed sync for all plans",
            total_plans=stats.total_plans,
            successful_syncs=stats.successful_syncs,
            failed_syncs=stats.failed_syncs,
            success_rate=f"{stats.success_rate:.1f}%",
            duration=f"{stats.total_duration:.2f}s"
        )
        return stats


class SyncEngineError(BucketSyncError):
    """Base exception for sync engine errors."""
    pass
