"""argparse front end for novelfeed.

Usage::

    python -m novelfeed.cli serve --port 8000

    python -m novelfeed.cli sync 1410
    python -m novelfeed.cli sync 1410 --volume 180624

    python -m novelfeed.cli top --sort weekVisit --page 2
    python -m novelfeed.cli wenku --sort lastUpdate --tag isekai

    python -m novelfeed.cli status --pending

Foreground commands build the same components as the web app, run one
operation and shut everything down again.  Listing commands never schedule
background syncs.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from novelfeed.config.loader import load_app_config
from novelfeed.config.settings import Settings
from novelfeed.config.tunables import AppConfig
from novelfeed.models.listing import ListingPage, TopFilter, WenkuFilter
from novelfeed.models.progress import SyncPhase, SyncProgress
from novelfeed.services.sync_service import novel_task_key
from novelfeed.utils.errors import NovelFeedError, WorkflowError

Handler = Callable[[argparse.Namespace, dict[str, Any]], Awaitable[int]]


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_listing(listing: ListingPage) -> None:
    header = listing.title or listing.url
    pages = str(listing.current_page)
    if listing.total_pages:
        pages += f"/{listing.total_pages}"
    print(f"{header} (page {pages})")
    print("=" * 40)
    for item in listing.items:
        author = f"  [{item.author}]" if item.author else ""
        print(f"  {item.nid:>6}  {item.updated_at:%Y-%m-%d}  {item.title}{author}")
    print(f"\n  {len(listing.items)} novels")


def _print_progress(snapshot: SyncProgress) -> None:
    if snapshot.phase == SyncPhase.CHAPTER:
        print(f"    chapter {snapshot.current}/{snapshot.total} (cid {snapshot.cid})")
    elif snapshot.phase == SyncPhase.VOLUME:
        print(f"  volume {snapshot.current}/{snapshot.total}: {snapshot.message} (vid {snapshot.vid})")
    elif snapshot.phase == SyncPhase.NOVEL:
        print(f"Syncing {snapshot.name} ({snapshot.total} volumes)")


def _cli_config(app_config: AppConfig) -> AppConfig:
    """Disable background scheduling of listed novels for one-shot commands."""
    sync = app_config.sync.model_copy(update={"schedule_listed": False})
    return app_config.model_copy(update={"sync": sync})


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_sync(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Run one incremental sync in the foreground, printing progress."""
    service = components["sync_service"]
    progress = components["progress"]
    key = novel_task_key(args.nid)
    progress.register_listener(key, _print_progress)

    try:
        if args.volume is not None:
            print(f"Syncing volume {args.volume} of novel {args.nid}")
            volume = await service.update_novel_volume(args.nid, args.volume)
            print(f"\nVolume synced: {volume.name} ({len(volume.chapters)} chapters)")
            return 0

        novel = await service.update_novel(args.nid)
    except NovelFeedError as exc:
        message = exc.get_message() if isinstance(exc, WorkflowError) else str(exc)
        print(f"Error: {message}", file=sys.stderr)
        return 1
    finally:
        progress.unregister_listener(key, _print_progress)

    snapshot = progress.get(key)
    print("\nSync complete:" if novel.done else "\nSync incomplete:")
    print(f"  Novel:    {novel.name} (nid {novel.nid})")
    print(f"  Volumes:  {len(novel.volumes)}")
    if snapshot is not None and snapshot.failed:
        print(f"  Failed:   {snapshot.failed}")
    print(f"  Done:     {'yes' if novel.done else 'no'}")
    return 0 if novel.done else 1


async def _handle_top(args: argparse.Namespace, components: dict[str, Any]) -> int:
    service = components["sync_service"]
    try:
        listing = await service.get_top(TopFilter(sort=args.sort, page=args.page))
    except NovelFeedError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    _print_listing(listing)
    return 0


async def _handle_wenku(args: argparse.Namespace, components: dict[str, Any]) -> int:
    service = components["sync_service"]
    filter_ = WenkuFilter(path=args.path, sort=args.sort, tag=args.tag, page=args.page)
    try:
        listing = await service.get_wenku(filter_)
    except NovelFeedError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    _print_listing(listing)
    return 0


async def _handle_status(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """List stored novels with their sync state."""
    repository = components["repository"]
    novels = await repository.list_novels(done=args.done)

    print("Stored novels")
    print("=" * 40)
    if not novels:
        print("  (none)")
        return 0

    for novel in novels:
        state = "done" if novel.done else "pending"
        print(f"  {novel.nid:>6}  {state:<8} {novel.fetched_at:%Y-%m-%d %H:%M}  {novel.name}")
    print(f"\n  {len(novels)} novels, {sum(1 for n in novels if n.done)} done")
    return 0


async def _run(
    handler: Handler,
    args: argparse.Namespace,
    app_settings: Settings,
    app_config: AppConfig,
) -> int:
    """Build components, run *handler*, and always shut the components down."""
    # Deferred: importing the app module pulls in FastAPI and playwright.
    from novelfeed.main import _build_all, shutdown_components

    components = _build_all(app_settings, app_config)
    try:
        await components["repository"].initialize()
        return await handler(args, components)
    finally:
        await shutdown_components(components)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the novelfeed CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m novelfeed.cli",
        description="Scrape linovelib novels into a local database and serve them.",
    )
    subparsers = parser.add_subparsers(dest="command", help="novelfeed commands")

    # -- serve --
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: APP_HOST)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: APP_PORT)")

    # -- sync --
    sync_parser = subparsers.add_parser("sync", help="Sync one novel into the database")
    sync_parser.add_argument("nid", type=int, help="Novel id")
    sync_parser.add_argument(
        "--volume",
        type=int,
        default=None,
        metavar="VID",
        help="Only sync this volume",
    )

    # -- top --
    top_parser = subparsers.add_parser("top", help="Show a ranking page")
    top_parser.add_argument("--sort", default=None, help="Ranking, e.g. monthVisit, weekVote")
    top_parser.add_argument("--page", type=int, default=None, help="Page number")

    # -- wenku --
    wenku_parser = subparsers.add_parser("wenku", help="Show a library page")
    wenku_parser.add_argument("--sort", default=None, help="Order, e.g. lastUpdate, monthVisit")
    wenku_parser.add_argument("--tag", default=None, help="Tag name or id, e.g. isekai")
    wenku_parser.add_argument("--page", type=int, default=None, help="Page number")
    wenku_parser.add_argument(
        "--path",
        default=None,
        help="Raw listing path, overriding the other filters",
    )

    # -- status --
    status_parser = subparsers.add_parser("status", help="List stored novels")
    state = status_parser.add_mutually_exclusive_group()
    state.add_argument("--done", dest="done", action="store_const", const=True, default=None)
    state.add_argument("--pending", dest="done", action="store_const", const=False)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

_HANDLERS: dict[str, Handler] = {
    "sync": _handle_sync,
    "top": _handle_top,
    "wenku": _handle_wenku,
    "status": _handle_status,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parses the subcommand, loads settings and tunables, and dispatches.
    ``serve`` hands over to uvicorn; every other command runs once inside
    ``asyncio.run`` and exits with the handler's return code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            "novelfeed.main:app",
            host=args.host or app_settings.app_host,
            port=args.port or app_settings.app_port,
        )
        sys.exit(0)

    handler = _HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    app_config = _cli_config(load_app_config(settings=app_settings))
    exit_code = asyncio.run(_run(handler, args, app_settings, app_config))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
