"""Command-line interface for namjukes.

Batch surface over the ingestion pipeline: scan a set of album photos into a bar's catalog,
or serve the scan-album gateway locally.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from namjukes.core.catalog import InMemoryCatalog, PersistenceError, SupabaseCatalog
from namjukes.core.config import AppConfig, load_app_config
from namjukes.core.gateway import run_gateway
from namjukes.core.ingest import (
    BackoffPolicy,
    CommitResult,
    ExtractionClient,
    FileImageRef,
    QuotaExhausted,
    ScanItem,
    ScanStatus,
    UploadSession,
)
from namjukes.core.utils.logging import configure_logging

console = Console()
logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_STATUS_STYLES = {
    ScanStatus.PENDING: "dim",
    ScanStatus.SCANNING: "cyan",
    ScanStatus.SCANNED: "green",
    ScanStatus.FAILED: "red",
}


def _load_config(path: str | None) -> AppConfig | None:
    try:
        return load_app_config(Path(path) if path else None)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]ERROR: Could not load config: {e}[/red]")
        return None


def _configure_logging(config: AppConfig, level: str | None) -> None:
    configure_logging(
        level=level or config.logging.level,
        filename=config.logging.filename,
        structured=config.logging.structured,
    )


def _items_table(items: list[ScanItem]) -> Table:
    table = Table(title="Scan results")
    table.add_column("Disk", justify="right")
    table.add_column("Title")
    table.add_column("Artist")
    table.add_column("Status")
    table.add_column("Songs", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Error")
    for item in sorted(items, key=lambda i: i.editable.disk_number):
        style = _STATUS_STYLES[item.status]
        songs = "none found" if item.found_nothing else str(len(item.songs))
        table.add_row(
            str(item.editable.disk_number),
            item.editable.title,
            item.editable.artist or "",
            f"[{style}]{item.status.value}[/{style}]",
            songs,
            str(item.attempts),
            item.last_error or "",
        )
    return table


def _print_commit_result(result: CommitResult) -> None:
    console.print(
        f"\n[bold]Commit:[/bold] {len(result.created)} created, "
        f"{len(result.failures)} failed, {len(result.skipped)} skipped"
    )
    for created in result.created:
        console.print(f"   [green]✅[/green] album {created.album_id} ({created.song_count} songs)")
    for failure in result.failures:
        console.print(f"   [red]❌[/red] {failure.item_id}: {failure.reason}")
    for warning in result.warnings:
        console.print(f"   [yellow]⚠[/yellow] {warning}")


def _print_quota_banner(error: QuotaExhausted) -> None:
    console.print(
        Panel(
            f"[bold]{error.message}[/bold]\n"
            "Remaining images will fail until credits are added. "
            "Rescan them once billing is sorted out.",
            title="Scan service credits exhausted",
            border_style="bold red",
        )
    )


async def run_ingest_async(
    config: AppConfig,
    bar_id: str,
    image_paths: list[Path],
    *,
    extract_metadata: bool,
    dry_run: bool,
) -> int:
    """Scan and commit one batch of images.

    Returns:
        Exit code (0 when every scanned item was committed, 1 otherwise)
    """
    if dry_run:
        catalog: InMemoryCatalog | SupabaseCatalog = InMemoryCatalog()
        console.print("[yellow]Dry run: albums are kept in memory only[/yellow]")
    else:
        if not config.catalog.supabase_url or not config.catalog.supabase_key:
            console.print("[red]ERROR: SUPABASE_URL and SUPABASE_KEY must be set[/red]")
            console.print("  or pass --dry-run to keep results in memory")
            return 1
        catalog = SupabaseCatalog.connect(
            config.catalog.supabase_url,
            api_key=config.catalog.supabase_key,
            access_token=config.catalog.access_token,
        )

    client = ExtractionClient.from_config(config.scan)
    policy = BackoffPolicy(**config.retry.model_dump())
    quota_reported = False

    def on_quota_exhausted(error: QuotaExhausted) -> None:
        nonlocal quota_reported
        if not quota_reported:
            quota_reported = True
            _print_quota_banner(error)

    try:
        session = await UploadSession.open(
            catalog,
            bar_id,
            client,
            policy=policy,
            extract_metadata=extract_metadata,
            storage=catalog,
            covers_bucket=config.catalog.covers_bucket,
            on_quota_exhausted=on_quota_exhausted,
        )
        async with session:
            session.add_images(FileImageRef(path) for path in image_paths)
            with console.status(f"Scanning {len(image_paths)} images..."):
                items = await session.wait_until_scanned()
            console.print(_items_table(items))

            scan_failed = sum(1 for item in items if item.status is ScanStatus.FAILED)
            result = await session.commit()
            _print_commit_result(result)
    except PersistenceError as e:
        console.print(f"[red]ERROR: {e}[/red]")
        return 1
    finally:
        await client.aclose()
        if isinstance(catalog, SupabaseCatalog):
            await catalog.aclose()

    return 1 if result.failures or scan_failed else 0


def run_ingest(args: argparse.Namespace) -> None:
    """Scan a batch of album photos into a bar's catalog."""
    config = _load_config(args.config)
    if config is None:
        sys.exit(1)
    _configure_logging(config, args.log_level)

    image_paths = [Path(p).resolve() for p in args.images]
    missing = [p for p in image_paths if not p.is_file()]
    if missing:
        for path in missing:
            console.print(f"[red]ERROR: Image not found: {path}[/red]")
        sys.exit(1)

    exit_code = asyncio.run(
        run_ingest_async(
            config,
            args.bar_id,
            image_paths,
            extract_metadata=args.metadata or config.scan.extract_metadata,
            dry_run=args.dry_run,
        )
    )
    sys.exit(exit_code)


def run_serve(args: argparse.Namespace) -> None:
    """Serve the scan-album gateway."""
    config = _load_config(args.config)
    if config is None:
        sys.exit(1)
    _configure_logging(config, args.log_level)

    updates = {}
    if args.host:
        updates["host"] = args.host
    if args.port:
        updates["port"] = args.port
    gateway = config.gateway.model_copy(update=updates)

    try:
        run_gateway(gateway)
    except ValueError as e:
        console.print(f"[red]ERROR: {e}[/red]")
        sys.exit(1)


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for CLI."""
    p = argparse.ArgumentParser(
        prog="namjukes",
        description="namjukes - bulk album ingestion for jukebox catalogs",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    ingest = sub.add_parser("ingest", help="Scan album photos and add them to a catalog")
    ingest.add_argument("images", nargs="+", help="Album photos (jpg/png/webp)")
    ingest.add_argument("--bar-id", required=True, help="Catalog (bar) to add albums to")
    ingest.add_argument("--config", help="Path to app config YAML/JSON (default: namjukes.yaml)")
    ingest.add_argument(
        "--metadata",
        action="store_true",
        help="Also infer album title/artist/year from the image",
    )
    ingest.add_argument(
        "--dry-run", action="store_true", help="Commit to an in-memory catalog"
    )
    ingest.add_argument(
        "--log-level", type=str.upper, choices=_LOG_LEVELS, help="Override the configured log level"
    )

    serve = sub.add_parser("serve", help="Run the scan-album gateway")
    serve.add_argument("--config", help="Path to app config YAML/JSON (default: namjukes.yaml)")
    serve.add_argument("--host", help="Bind address (default from config)")
    serve.add_argument("--port", type=int, help="Port (default from config)")
    serve.add_argument(
        "--log-level", type=str.upper, choices=_LOG_LEVELS, help="Override the configured log level"
    )

    return p


def main() -> None:
    """Main entry point for CLI."""
    p = build_arg_parser()
    args = p.parse_args()

    if args.cmd == "ingest":
        run_ingest(args)
    elif args.cmd == "serve":
        run_serve(args)


if __name__ == "__main__":
    main()
