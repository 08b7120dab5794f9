#!/usr/bin/env python
"""Load web pages into the knowledge base.

Usage:
    python scripts/ingest_urls.py https://example.com            # Fail on first error
    python scripts/ingest_urls.py URL1 URL2 --isolate            # Keep going past failures
    python scripts/ingest_urls.py URL1 --verbose                 # Show detailed progress
"""
import argparse
import asyncio
import sys
from pathlib import Path
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatme.config import load_settings
from chatme.errors import ConfigError
from chatme.logging_config import configure_logging
from chatme.services import build_services
import structlog

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, url: str):
        """Update progress."""
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {url[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, report):
        """Finish progress reporting."""
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print(f"  {report.message}")
        print(f"{'=' * 60}\n")
        print(f"  URLs processed:   {report.urls_processed}")
        print(f"  URLs failed:      {report.urls_failed}")
        print(f"  Chunks inserted:  {report.chunks_inserted}")
        print(f"  Time elapsed:     {elapsed_seconds:.1f}s")

        for result in report.results:
            if result.error:
                print(f"\n  ✗ {result.url}: {result.error}")

        print(f"\n{'=' * 60}\n")


async def main():
    """Main entry point for the ingestion script."""
    parser = argparse.ArgumentParser(
        description="Load web pages into the knowledge base",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("urls", nargs="+", help="Page URLs to ingest")

    parser.add_argument(
        "--isolate",
        action="store_true",
        help="Record failing URLs and continue instead of aborting the batch",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )

    args = parser.parse_args()

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"\n❌ {e}\n")
        sys.exit(1)

    configure_logging(settings.log_level)
    services = build_services(settings)
    progress = ProgressReporter(verbose=args.verbose)

    try:
        print("\n📋 Configuration:")
        print(f"   Vector store:     {settings.vector_store_backend}")
        print(f"   Collection:       {settings.collection_name}")
        print(f"   Embedding model:  {settings.embedding_model} (dim={settings.embedding_dimension})")
        print(f"   Chunk size:       {settings.chunk_size} chars")
        print(f"   Chunk overlap:    {settings.chunk_overlap} chars")

        progress.start(f"Ingesting {len(args.urls)} URL(s)")

        pipeline = services.ingest_pipeline(isolate_failures=args.isolate)
        report = await pipeline.ingest(args.urls, progress_callback=progress.update)

        progress.finish(report)

        if not report.success:
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\n⚠️  Ingestion cancelled by user.\n")
        sys.exit(1)

    except Exception as e:
        print(f"\n❌ Error: {e}\n")
        logger.error("ingest_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)

    finally:
        await services.aclose()


if __name__ == "__main__":
    asyncio.run(main())
