"""Bounded-concurrency execution of sync actions with a single retry."""

import asyncio
import mimetypes
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..errors import TransferError
from ..local.filesystem import DEFAULT_CHUNK_SIZE, move_to_trash
from ..models import ActionKind, ActionOutcome, ExecutionReport, OutcomeStatus, SyncAction
from ..remote.base import ObjectStore, is_transient
from ..utils.logging import get_logger, log_async_execution_time


ProgressCallback = Callable[[ActionOutcome], None]


class SyncActionRunner:
    """Performs single sync actions between a local root and a bucket prefix."""

    def __init__(
        self,
        local_root: Union[str, os.PathLike],
        bucket: str,
        prefix: str,
        store: ObjectStore,
        remote_trash_prefix: str = ".bucketsync-trash/",
        trash_func: Optional[Callable[[str], None]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ):
        """Initialize the runner.

        Args:
            local_root: Local directory the relative keys resolve against
            bucket: Bucket name
            prefix: Remote key prefix the relative keys resolve against
            store: Object store to transfer with
            remote_trash_prefix: Bucket-level prefix receiving remote deletes
            trash_func: Replacement for the OS trash call
            chunk_size: Read size for streamed downloads
        """
        self.local_root = Path(local_root)
        self.bucket = bucket
        self.prefix = prefix
        self.store = store
        self.remote_trash_prefix = remote_trash_prefix
        self.trash_func = trash_func
        self.chunk_size = chunk_size
        self.logger = get_logger(self.__class__.__name__)

    def local_path(self, key: str) -> Path:
        return self.local_root.joinpath(*key.split("/"))

    def remote_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def trash_key(self, remote_key: str, now: Optional[datetime] = None) -> str:
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S%fZ")
        return f"{self.remote_trash_prefix}{stamp}/{remote_key}"

    async def run(self, action: SyncAction):
        """Perform ``action``. Errors propagate to the caller."""
        if action.kind == ActionKind.UPLOAD:
            await self._upload(action.key)
        elif action.kind == ActionKind.DOWNLOAD:
            await self._download(action.key)
        elif action.kind == ActionKind.DELETE_LOCAL:
            await self._delete_local(action.key)
        elif action.kind == ActionKind.DELETE_REMOTE:
            await self._delete_remote(action.key)
        elif action.kind != ActionKind.SKIP:
            raise ValueError(f"Unsupported action kind: {action.kind}")

    async def _upload(self, key: str):
        path = self.local_path(key)
        content_type, _ = mimetypes.guess_type(path.name)
        with open(path, "rb") as source:
            await self.store.upload(self.bucket, self.remote_key(key), source, content_type)
        self.logger.debug("Uploaded", key=key, content_type=content_type)

    async def _download(self, key: str):
        target = self.local_path(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        temp_path = target.with_name(target.name + ".part")
        try:
            with open(temp_path, "wb") as sink:
                await self.store.download(self.bucket, self.remote_key(key), sink)
            os.replace(temp_path, target)
        except BaseException:
            if temp_path.exists():
                temp_path.unlink()
            raise
        self.logger.debug("Downloaded", key=key)

    async def _delete_local(self, key: str):
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, move_to_trash, self.local_path(key), self.trash_func)

    async def _delete_remote(self, key: str):
        remote_key = self.remote_key(key)
        trash_key = self.trash_key(remote_key)
        await self.store.copy_object(self.bucket, remote_key, trash_key)
        await self.store.delete_object(self.bucket, remote_key)
        self.logger.debug("Moved remote object to trash", key=remote_key, trash_key=trash_key)


class ExecutionController:
    """Runs actions under a semaphore, retrying transient failures once.

    One action failing never cancels its siblings. The report holds exactly
    one outcome per input action, in input order.
    """

    def __init__(
        self,
        runner: SyncActionRunner,
        retry_delay: float = 1.0,
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None
    ):
        self.runner = runner
        self.retry_delay = retry_delay
        self.cancel_event = cancel_event
        self.on_progress = on_progress
        self.logger = get_logger(self.__class__.__name__)

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    @log_async_execution_time
    async def execute(self, actions: List[SyncAction], concurrency_limit: int = 1) -> ExecutionReport:
        """Execute ``actions`` with at most ``concurrency_limit`` in flight.

        Args:
            actions: Actions in the order they should start
            concurrency_limit: Number of simultaneous actions

        Returns:
            ExecutionReport with one outcome per action
        """
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")

        semaphore = asyncio.Semaphore(concurrency_limit)

        async def execute_single(action: SyncAction) -> ActionOutcome:
            async with semaphore:
                outcome = await self._run_action(action)
            if self.on_progress is not None:
                self.on_progress(outcome)
            return outcome

        self.logger.info("Executing actions", total=len(actions), concurrency_limit=concurrency_limit)

        outcomes = await asyncio.gather(*[execute_single(action) for action in actions])
        report = ExecutionReport(outcomes=list(outcomes))

        self.logger.info(
            "Execution completed",
            succeeded=len(report.succeeded),
            failed=len(report.failed),
            skipped=len(report.skipped)
        )
        return report

    async def _run_action(self, action: SyncAction) -> ActionOutcome:
        if action.kind == ActionKind.SKIP:
            return ActionOutcome(action, OutcomeStatus.SKIPPED, reason="unchanged")
        if self._cancelled():
            return ActionOutcome(action, OutcomeStatus.SKIPPED, reason="cancelled")

        attempts = 0
        while True:
            attempts += 1
            try:
                await self.runner.run(action)
                return ActionOutcome(action, OutcomeStatus.SUCCEEDED, attempts=attempts)
            except Exception as e:
                if attempts == 1 and is_transient(e):
                    self.logger.warning(
                        "Transient failure, retrying once",
                        action=str(action),
                        error=str(e),
                        retry_delay=self.retry_delay
                    )
                    await asyncio.sleep(self.retry_delay)
                    continue

                error = TransferError(action.key, str(e) or e.__class__.__name__)
                self.logger.error("Action failed", action=str(action), attempts=attempts, error=error.reason)
                return ActionOutcome(action, OutcomeStatus.FAILED, reason=error.reason, attempts=attempts)
