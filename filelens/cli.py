"""Command line interface for FileLens."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from core.exceptions import ConfigurationError, FileLensError
from core.models import IndexingResult

from .core.config import FileLensConfig


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI.

    Args:
        verbose: Whether to enable verbose logging
    """
    logger.remove()

    if verbose:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
        )
    else:
        logger.add(
            sys.stderr,
            level="INFO",
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
        )


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the complete argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="filelens",
        description="Local semantic file search with retrieval-augmented answers",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--db", type=Path, help="Vector store directory")
    parser.add_argument("--config", type=Path, help="JSON config file (replaces the default search)")
    parser.add_argument("--metrics", action="store_true", help="Print latency metrics after the command")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    index_parser = subparsers.add_parser("index", help="Index files or directories")
    index_parser.add_argument("paths", nargs="+", type=Path, help="Files or directories to index")
    index_parser.add_argument("--concurrency", type=int, help="Files indexed at once")

    ask_parser = subparsers.add_parser("ask", help="Ask a question about indexed files")
    ask_parser.add_argument("question", help="Question to answer")
    ask_parser.add_argument("--top-k", type=int, help="Number of chunks to retrieve")
    ask_parser.add_argument("--path-prefix", help="Only search files under this path")
    ask_parser.add_argument("--model", help="Ollama model to use")
    ask_parser.add_argument("--context-only", action="store_true", help="Print retrieved context without calling the model")

    subparsers.add_parser("stats", help="Show index statistics")

    remove_parser = subparsers.add_parser("remove", help="Remove files from the index")
    remove_parser.add_argument("paths", nargs="+", type=Path, help="Files to remove")

    clear_parser = subparsers.add_parser("clear", help="Remove every indexed record")
    clear_parser.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    return parser


def load_config(args: argparse.Namespace) -> FileLensConfig:
    """Load configuration, applying command line overrides last."""
    overrides: dict[str, Any] = {}
    if args.db is not None:
        overrides["database"] = {"path": str(args.db)}
    if getattr(args, "concurrency", None) is not None:
        overrides["indexing"] = {"concurrency": args.concurrency}
    if getattr(args, "model", None):
        overrides["llm"] = {"model": args.model}

    config_files = [args.config] if args.config is not None else None
    try:
        return FileLensConfig.load_hierarchical(Path.cwd(), config_files, **overrides)
    except ValidationError as e:
        raise ConfigurationError(reason=str(e)) from e


def _print_result(result: IndexingResult, completed: int, total: int) -> None:
    if result.success:
        print(f"[{completed}/{total}] {result.file_path}: {result.chunks_created} chunks")
    else:
        print(f"[{completed}/{total}] {result.file_path}: failed ({result.error})", file=sys.stderr)


async def index_command(registry: Any, args: argparse.Namespace) -> int:
    service = registry.create_indexing_service()

    files: list[Path] = []
    for path in args.paths:
        if not path.exists():
            print(f"Path not found: {path}", file=sys.stderr)
            continue
        files.extend(service.discover_files(path))

    if not files:
        print("No supported files found")
        return 1

    results = await service.index_files(files, on_file_done=_print_result)
    succeeded = sum(1 for r in results if r.success)
    chunks = sum(r.chunks_created for r in results)
    print(f"Indexed {succeeded}/{len(results)} files ({chunks} chunks)")
    return 0 if succeeded == len(results) else 1


async def ask_command(registry: Any, args: argparse.Namespace) -> int:
    retrieval = await registry.create_retrieval_service().retrieve(
        args.question, top_k=args.top_k, path_prefix=args.path_prefix
    )

    if args.context_only:
        print(retrieval.context or "(no relevant context)")
        return 0

    client = registry.get_llm_client()
    if not await client.check_connection():
        print(f"Cannot reach Ollama at {client.base_url}. Is it running?", file=sys.stderr)
        return 1
    if not await client.has_model(client.model):
        print(f"Model '{client.model}' not found. Try: ollama pull {client.model}", file=sys.stderr)
        return 1

    async for fragment in client.query(args.question, retrieval):
        sys.stdout.write(fragment)
        sys.stdout.flush()
    print()

    if retrieval.sources:
        print("\nSources:")
        for source in retrieval.sources:
            print(f"  - {source}")
    return 0


async def stats_command(registry: Any, args: argparse.Namespace) -> int:
    stats = await registry.get_vector_store().get_stats()
    print(f"Files:      {stats.total_files}")
    print(f"Chunks:     {stats.total_chunks}")
    print(f"Tokens:     ~{stats.total_tokens}")
    print(f"Index size: {stats.index_size_bytes} bytes")
    if stats.last_indexed is not None:
        print(f"Last indexed: {stats.last_indexed_datetime.isoformat(timespec='seconds')}")
    return 0


async def remove_command(registry: Any, args: argparse.Namespace) -> int:
    service = registry.create_indexing_service()
    failed = 0
    for path in args.paths:
        result = await service.remove_file(path)
        if not result.success:
            print(f"{result.file_path}: {result.error}", file=sys.stderr)
            failed += 1
    return 1 if failed else 0


async def clear_command(registry: Any, args: argparse.Namespace) -> int:
    if not args.yes:
        answer = input("Remove every indexed record? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted")
            return 1
    await registry.get_vector_store().clear()
    print("Index cleared")
    return 0


COMMANDS = {
    "index": index_command,
    "ask": ask_command,
    "stats": stats_command,
    "remove": remove_command,
    "clear": clear_command,
}


async def async_main(argv: list[str] | None = None) -> int:
    """Async main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    # Deferred so that --help does not import the embedding and storage stack
    from registry import create_registry

    try:
        config = load_config(args)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    if config.debug and not args.verbose:
        setup_logging(verbose=True)

    registry = create_registry(config)
    try:
        await registry.open()
        status = await COMMANDS[args.command](registry, args)
        if args.metrics:
            print(registry.get_metrics().report())
        return status
    except FileLensError as e:
        logger.error(f"Command failed: {e}")
        return 1
    finally:
        await registry.close()


def main() -> None:
    """Main entry point for the CLI."""
    try:
        sys.exit(asyncio.run(async_main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
