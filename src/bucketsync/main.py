"""Command line entry point."""

import argparse
import asyncio
import json
import signal
import sys
from typing import List, Optional

from pydantic import ValidationError

from .config.document_store import JsonDocumentStore
from .config.loader import ConfigLoader
from .config.manager import InstanceManager, SyncPlanManager
from .config.schema import StoreInstance, SyncPlan
from .config.settings import BucketSyncSettings, get_settings
from .core.namer import HashCopier, target_name
from .core.sync_engine import SyncEngine
from .errors import BucketSyncError, SyncCancelledError
from .models import SyncDirection
from .remote.lister import normalize_prefix
from .utils.logging import get_logger, setup_logging


class BucketSyncApp:
    """Wires settings, persisted records and the sync engine together."""

    def __init__(self, settings: Optional[BucketSyncSettings] = None):
        self.settings = settings or get_settings()
        self.logger = get_logger("BucketSync")

        self.plan_manager = SyncPlanManager(JsonDocumentStore(self.settings.storage.plans_path()))
        self.instance_manager = InstanceManager(JsonDocumentStore(self.settings.storage.instances_path()))
        self._engine: Optional[SyncEngine] = None

    @property
    def engine(self) -> SyncEngine:
        if self._engine is None:
            self._engine = SyncEngine(self.plan_manager, self.instance_manager, settings=self.settings)
        return self._engine

    # Plans

    def cmd_plan(self, args) -> int:
        if args.plan_command == "list":
            plans = [plan.to_document() for plan in self.plan_manager.plans]
            _print_json(plans)
        elif args.plan_command == "add":
            plan = SyncPlan(
                bucket=args.bucket,
                store_instance_id=args.instance,
                local_dir=args.local_dir,
                remote_dir=args.remote_dir,
            )
            self.instance_manager.get(plan.store_instance_id)
            self.plan_manager.add(plan)
            print(plan.id)
        elif args.plan_command == "delete":
            if not self.plan_manager.delete(args.plan_id):
                print(f"❌ Sync plan not found: {args.plan_id}")
                return 1
        elif args.plan_command == "import":
            return self._import(args.file)
        elif args.plan_command == "export":
            ConfigLoader().save_export_file(
                self.plan_manager.plans,
                self.instance_manager.instances,
                args.file,
                include_secrets=args.include_secrets,
            )
        return 0

    def _import(self, file_path: str) -> int:
        loader = ConfigLoader()
        import_file = loader.load_import_file(file_path)
        known = [i.instance_id for i in self.instance_manager.instances]
        for warning in loader.validate_import(import_file, known):
            print(f"⚠️  {warning}")

        for instance in import_file.instances:
            if self.instance_manager.find(instance.instance_id) is None:
                self.instance_manager.add(instance)
        for plan in import_file.plans:
            if self.plan_manager.find(plan.id) is None:
                self.plan_manager.add(plan)

        print(f"Imported {len(import_file.instances)} instance(s) and {len(import_file.plans)} plan(s)")
        return 0

    # Store instances

    def cmd_instance(self, args) -> int:
        if args.instance_command == "list":
            instances = [
                {
                    "instance_id": i.instance_id,
                    "name": i.name,
                    "endpoint_url": i.endpoint_url,
                    "region": i.region,
                }
                for i in self.instance_manager.instances
            ]
            _print_json(instances)
        elif args.instance_command == "add":
            instance = StoreInstance(
                name=args.name,
                endpoint_url=args.endpoint_url,
                access_key_id=args.access_key_id,
                secret_access_key=args.secret_access_key,
                region=args.region,
            )
            self.instance_manager.add(instance)
            print(instance.instance_id)
        elif args.instance_command == "delete":
            if not self.instance_manager.delete(args.instance_id):
                print(f"❌ Store instance not found: {args.instance_id}")
                return 1
        return 0

    # Sync

    async def cmd_sync(self, args) -> int:
        direction = SyncDirection(args.direction)

        if args.all:
            stats = await self.engine.sync_all_plans(
                direction,
                concurrency_limit=args.concurrency,
                dry_run=args.dry_run,
            )
            print(f"Plans: {stats.total_plans}, succeeded: {stats.successful_syncs}, failed: {stats.failed_syncs}")
            return 0 if stats.failed_syncs == 0 else 1

        cancel_event = asyncio.Event()
        loop = asyncio.get_event_loop()
        previous = signal.signal(signal.SIGINT, lambda signum, frame: loop.call_soon_threadsafe(cancel_event.set))
        try:
            result = await self.engine.sync_plan_by_id(
                args.plan_id,
                direction,
                concurrency_limit=args.concurrency,
                dry_run=args.dry_run,
                use_cached_listing=args.cached_listing,
                cancel_event=cancel_event,
                on_progress=lambda outcome: self.logger.info(
                    "Action finished",
                    action=str(outcome.action),
                    status=outcome.status.value,
                    reason=outcome.reason
                ),
            )
        except SyncCancelledError:
            print("Sync cancelled while listing the bucket; nothing was changed")
            return 130
        finally:
            signal.signal(signal.SIGINT, previous)

        for action in result.changes:
            print(action)
        for path in result.skipped_subtrees:
            print(f"⚠️  Skipped unreadable directory: {path}")
        print(_format_summary(result.summary))

        if result.report is not None:
            for key, reason in result.report.failed:
                print(f"❌ {key}: {reason}")
            if cancel_event.is_set():
                print("Sync cancelled; unstarted actions were skipped")
        return 0 if result.success else 1

    async def cmd_preview(self, args) -> int:
        plan = self.plan_manager.get(args.plan_id)
        actions = await self.engine.preview(plan, SyncDirection(args.direction))
        if args.json:
            _print_json([{"kind": a.kind.value, "key": a.key} for a in actions])
        else:
            for action in actions:
                print(action)
        return 0

    async def cmd_find_empty(self, args) -> int:
        plan = self.plan_manager.get(args.plan_id)
        store = self.engine.store_factory.get_store(plan.store_instance_id)
        keys = await self.engine.lister.find_empty_objects(store, plan.bucket, normalize_prefix(plan.remote_dir))
        for key in keys:
            print(key)
        return 0

    # Content naming

    async def cmd_hash(self, args) -> int:
        for path in args.files:
            print(f"{await target_name(path, self.settings.transfer.chunk_size)}  {path}")
        return 0

    async def cmd_hash_copy(self, args) -> int:
        copier = HashCopier(chunk_size=self.settings.transfer.chunk_size)
        report = await copier.copy_files(
            args.source,
            args.target,
            extensions=args.extensions,
            move_after_copy=args.move,
        )
        print(f"✅ Copied: {len(report.copied)}")
        print(f"Already copied: {len(report.duplicates)}")
        for path, reason in report.failed:
            print(f"❌ {path}: {reason}")
        return 0 if not report.failed else 1


def _print_json(data):
    print(json.dumps(data, indent=2, default=str))


def _format_summary(summary) -> str:
    return ", ".join(f"{kind}: {count}" for kind, count in summary.items())


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bucketsync",
        description="Mirror local directories to and from S3-compatible buckets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s instance add --access-key-id KEY --secret-access-key SECRET
  %(prog)s plan add --bucket photos --instance ID --local-dir ~/Pictures
  %(prog)s preview PLAN_ID --direction mirror_to_remote
  %(prog)s sync PLAN_ID --direction mirror_to_remote --concurrency 4
  %(prog)s hash-copy ~/Camera ~/Library --ext jpg --ext png
        """
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only show errors")

    subparsers = parser.add_subparsers(dest="command", required=True)
    directions = [d.value for d in SyncDirection]

    plan = subparsers.add_parser("plan", help="Manage sync plans")
    plan_sub = plan.add_subparsers(dest="plan_command", required=True)
    plan_sub.add_parser("list", help="List sync plans")
    plan_add = plan_sub.add_parser("add", help="Add a sync plan")
    plan_add.add_argument("--bucket", required=True)
    plan_add.add_argument("--instance", required=True, help="Store instance id")
    plan_add.add_argument("--local-dir", required=True)
    plan_add.add_argument("--remote-dir", default="")
    plan_delete = plan_sub.add_parser("delete", help="Delete a sync plan")
    plan_delete.add_argument("plan_id")
    plan_import = plan_sub.add_parser("import", help="Import plans and instances from YAML or JSON")
    plan_import.add_argument("file")
    plan_export = plan_sub.add_parser("export", help="Export plans and instances to YAML or JSON")
    plan_export.add_argument("file")
    plan_export.add_argument("--include-secrets", action="store_true")

    instance = subparsers.add_parser("instance", help="Manage store instances")
    instance_sub = instance.add_subparsers(dest="instance_command", required=True)
    instance_sub.add_parser("list", help="List store instances")
    instance_add = instance_sub.add_parser("add", help="Add a store instance")
    instance_add.add_argument("--name")
    instance_add.add_argument("--endpoint-url", default="")
    instance_add.add_argument("--access-key-id", required=True)
    instance_add.add_argument("--secret-access-key", required=True)
    instance_add.add_argument("--region", default="us-east-1")
    instance_delete = instance_sub.add_parser("delete", help="Delete a store instance")
    instance_delete.add_argument("instance_id")
    instance_buckets = instance_sub.add_parser("buckets", help="List buckets visible to an instance")
    instance_buckets.add_argument("instance_id")

    sync = subparsers.add_parser("sync", help="Run a sync plan")
    sync.add_argument("plan_id", nargs="?")
    sync.add_argument("--all", action="store_true", help="Sync every plan")
    sync.add_argument("--direction", choices=directions, required=True)
    sync.add_argument("--concurrency", type=int, help="Simultaneous transfers")
    sync.add_argument("--dry-run", action="store_true")
    sync.add_argument("--cached-listing", action="store_true", help="Reuse a cached remote listing")

    preview = subparsers.add_parser("preview", help="Show the actions a sync would perform")
    preview.add_argument("plan_id")
    preview.add_argument("--direction", choices=directions, required=True)
    preview.add_argument("--json", action="store_true")

    hash_cmd = subparsers.add_parser("hash", help="Print content names of files")
    hash_cmd.add_argument("files", nargs="+")

    hash_copy = subparsers.add_parser("hash-copy", help="Copy files under their content names")
    hash_copy.add_argument("source")
    hash_copy.add_argument("target")
    hash_copy.add_argument("--ext", dest="extensions", action="append", help="Extension to include (repeatable)")
    hash_copy.add_argument("--move", action="store_true", help="Move sources to the trash after copying")

    find_empty = subparsers.add_parser("find-empty", help="List zero-byte objects of a plan")
    find_empty.add_argument("plan_id")

    return parser


async def dispatch(app: BucketSyncApp, args) -> int:
    """Run the selected command."""
    if args.command == "plan":
        return app.cmd_plan(args)
    if args.command == "instance":
        if args.instance_command == "buckets":
            store = app.engine.store_factory.get_store(args.instance_id)
            for bucket in await store.list_buckets():
                print(bucket)
            return 0
        return app.cmd_instance(args)
    if args.command == "sync":
        if not args.all and not args.plan_id:
            print("❌ Give a plan id or --all")
            return 2
        return await app.cmd_sync(args)
    if args.command == "preview":
        return await app.cmd_preview(args)
    if args.command == "find-empty":
        return await app.cmd_find_empty(args)
    if args.command == "hash":
        return await app.cmd_hash(args)
    if args.command == "hash-copy":
        return await app.cmd_hash_copy(args)
    raise ValueError(f"Unknown command: {args.command}")


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()

    log_level = "ERROR" if args.quiet else ("DEBUG" if args.verbose else settings.logging.level)
    setup_logging(log_level=log_level, log_format=settings.logging.format, log_file=settings.logging.file_path)

    logger = get_logger("main")
    app = BucketSyncApp(settings)

    try:
        return await dispatch(app, args)
    except (BucketSyncError, ValidationError, OSError) as e:
        logger.error("Command failed", command=args.command, error=str(e))
        print(f"❌ {e}")
        return 1


def run():
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(130)


if __name__ == "__main__":
    run()
