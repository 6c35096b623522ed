#!/usr/bin/env python3
"""CLI for the caption store.

Usage:
    # Show one video as JSON
    python -m cli.captions get dQw4w9WgXcQ

    # Write a video's JSON/SRT/TXT files into a directory
    python -m cli.captions export dQw4w9WgXcQ exports/

    # Browse the store
    python -m cli.captions stats
    python -m cli.captions list --author "Rick Astley" --limit 20
    python -m cli.captions search "never gonna"
    python -m cli.captions random --count 5

    # Regenerate the static API and report the work queue
    python -m cli.captions generate
    python -m cli.captions queue

    # Rebuild the master index from the shard files
    python -m cli.captions rebuild-index
"""

import argparse
import json
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from services.errors import StoreError
from services.queue_reconciler import QueueReconciler
from services.record_reader import PageResult, RecordReader, VideoFilter
from services.shard_store import ShardStore
from services.view_generator import ViewGenerator
from utils.config import load_config, setup_logging, validate_config

console = Console()


def open_store(config: dict) -> ShardStore:
    return ShardStore(
        config["data_root"],
        shard_capacity=config["shard_capacity"],
        prefix_length=config["shard_prefix_length"],
    )


def print_page(page: PageResult, title: str) -> None:
    """Render a page of records as a table."""
    table = Table(title=f"{title} ({page.offset + 1}-{page.offset + len(page.records)} of {page.total})")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Author", style="magenta")
    table.add_column("Views", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Languages")

    for record in page.records:
        table.add_row(
            record.id,
            record.title,
            record.author or "",
            f"{record.view_count:,}",
            f"{record.duration}s",
            ", ".join(record.languages),
        )

    console.print(table)
    print_errors(page.errors)


def print_errors(errors: list[str]) -> None:
    if not errors:
        return
    console.print(f"[yellow]⚠ {len(errors)} problems while reading the store[/yellow]")
    for error in errors[:5]:  # Show first 5 errors
        console.print(f"  [dim]{error}[/dim]")


def cmd_get(args, config: dict) -> int:
    record = RecordReader(open_store(config)).get(args.video_id)
    console.print_json(json.dumps(record.to_dict(), ensure_ascii=False))
    return 0


def cmd_export(args, config: dict) -> int:
    generator = ViewGenerator(open_store(config), config["api_output_dir"])
    report = generator.export_video(args.video_id, args.output_dir)
    console.print(f"[green]✓ Wrote {report.files_written} files to {args.output_dir}[/green]")
    print_errors(report.errors)
    return 0 if report.ok else 1


def cmd_stats(args, config: dict) -> int:
    stats = RecordReader(open_store(config)).stats()
    console.print("\n[bold blue]Database Statistics[/bold blue]")
    console.print(f"  Total videos: {stats['total_videos']:,}")
    console.print(f"  Shards: {stats['shards']:,}")
    console.print(f"  Last updated: {stats['last_updated'] or 'never'}")
    return 0


def cmd_list(args, config: dict) -> int:
    video_filter = VideoFilter(
        author=args.author, min_views=args.min_views, max_duration=args.max_duration
    )
    page = RecordReader(open_store(config)).list_videos(video_filter, args.limit, args.offset)
    print_page(page, "Videos")
    return 0


def cmd_search(args, config: dict) -> int:
    page = RecordReader(open_store(config)).search(args.query, args.limit, args.offset)
    print_page(page, f"Search: {args.query}")
    return 0


def cmd_random(args, config: dict) -> int:
    page = RecordReader(open_store(config)).random_videos(args.count)
    print_page(page, "Random videos")
    return 0


def cmd_generate(args, config: dict) -> int:
    output_dir = args.output or config["api_output_dir"]
    store = open_store(config)
    queue = QueueReconciler(config["queue_file"])

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Generating static API...", total=None)

        def on_progress(done: int, total: int) -> None:
            progress.update(task, completed=done, total=total)

        generator = ViewGenerator(
            store,
            output_dir,
            queue_reconciler=queue,
            base_url=config.get("static_base_url"),
            on_progress=on_progress,
        )
        report = generator.generate()

    console.print(
        f"[green]✓ Generated {report.files_written} files for {report.videos} videos[/green]"
    )
    console.print(f"[dim]Duration: {report.duration_seconds:.1f}s[/dim]")
    if report.errors:
        console.print(f"[red]✗ {len(report.errors)} errors occurred[/red]")
        for error in report.errors[:5]:
            console.print(f"  [dim]{error}[/dim]")
        return 1
    return 0


def cmd_queue(args, config: dict) -> int:
    queue = QueueReconciler(args.file or config["queue_file"])
    status = queue.status(open_store(config).load_index())
    console.print_json(json.dumps(status))
    return 0


def cmd_rebuild_index(args, config: dict) -> int:
    result = open_store(config).rebuild_index()
    console.print(
        f"[green]✓ Indexed {result.index.total} videos from {result.shards_scanned} shards[/green]"
    )
    if result.duplicates:
        console.print(f"[yellow]⚠ {len(result.duplicates)} duplicate records ignored[/yellow]")
    print_errors(result.errors)
    return 0 if not result.errors else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Caption store tools")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("get", help="Print a video as JSON")
    p.add_argument("video_id")
    p.set_defaults(func=cmd_get)

    p = sub.add_parser("export", help="Export a video's artifacts to a directory")
    p.add_argument("video_id")
    p.add_argument("output_dir", nargs="?", default="exports")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("stats", help="Show database statistics")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("list", help="List videos")
    p.add_argument("--author")
    p.add_argument("--min-views", type=int)
    p.add_argument("--max-duration", type=int)
    p.add_argument("--limit", type=int, default=50)
    p.add_argument("--offset", type=int, default=0)
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("search", help="Search titles and authors")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=50)
    p.add_argument("--offset", type=int, default=0)
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("random", help="Sample random videos")
    p.add_argument("--count", type=int, default=10)
    p.set_defaults(func=cmd_random)

    p = sub.add_parser("generate", help="Generate the static API")
    p.add_argument("--output", help="Output directory (default: API_OUTPUT_DIR)")
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("queue", help="Show queue status")
    p.add_argument("--file", help="Queue file (default: QUEUE_FILE)")
    p.set_defaults(func=cmd_queue)

    p = sub.add_parser("rebuild-index", help="Rebuild the master index from shard files")
    p.set_defaults(func=cmd_rebuild_index)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()
    setup_logging(args.log_level or config["log_level"])

    errors = validate_config(config)
    if errors:
        for error in errors:
            console.print(f"[red]✗ {error}[/red]")
        return 2

    try:
        return args.func(args, config)
    except (StoreError, ValueError) as e:
        console.print(f"[red]✗ {e}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
