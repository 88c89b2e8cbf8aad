from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import asdict
from typing import Optional

import httpx
from rich.console import Console

from .api.v1.schemas import VideoResponse
from .core.config import get_settings
from .core.db import create_engine, create_schema, create_session_factory
from .core.logging import configure_logging, level_from_name
from .core.storage import get_storage
from .db.models import SourceVariant
from .ingest.classifier import IntakePayload
from .ingest.duration import format_duration
from .ingest.errors import IngestionError, SubmissionValidationError
from .ingest.identifiers import extract_external_id
from .ingest.resolver import YouTubeMetadataClient
from .services.ingest_service import IngestService

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI.

    Returns:
        The argument parser.
    """
    parser = argparse.ArgumentParser(description="Marquee ingestion developer CLI")
    subparsers = parser.add_subparsers(dest="command")

    duration_parser = subparsers.add_parser("duration", help="Format an ISO-8601 duration for display")
    duration_parser.add_argument("value", help="Duration such as PT1H2M3S")
    duration_parser.set_defaults(func=_cmd_duration)

    extract_parser = subparsers.add_parser("extract-id", help="Extract the YouTube video id from a URL")
    extract_parser.add_argument("url", help="YouTube watch, short or embed URL")
    extract_parser.set_defaults(func=_cmd_extract_id)

    resolve_parser = subparsers.add_parser("resolve", help="Fetch metadata for a YouTube video id")
    resolve_parser.add_argument("external_id", help="11-character YouTube video id")
    resolve_parser.set_defaults(func=_cmd_resolve)

    init_parser = subparsers.add_parser("init-db", help="Create the catalog tables in the configured database")
    init_parser.set_defaults(func=_cmd_init_db)

    ingest_parser = subparsers.add_parser("ingest", help="Run one create ingestion and print the stored record")
    ingest_parser.add_argument("--variant", required=True, choices=[item.value for item in SourceVariant])
    ingest_parser.add_argument("--url", help="External platform URL (external variant)")
    ingest_parser.add_argument("--embed", help="Embed markup (embed variant)")
    ingest_parser.add_argument("--file-ref", help="Uploaded blob key (upload variant)")
    ingest_parser.add_argument("--title")
    ingest_parser.add_argument("--description")
    ingest_parser.add_argument("--author")
    ingest_parser.add_argument("--thumbnail-url", help="Remote thumbnail to fetch (embed variant)")
    ingest_parser.set_defaults(func=_cmd_ingest)
    return parser


def _cmd_duration(args: argparse.Namespace) -> None:
    console.print(format_duration(args.value))


def _cmd_extract_id(args: argparse.Namespace) -> None:
    external_id = extract_external_id(args.url)
    if external_id is None:
        console.print(f"[red]No video id found in {args.url}[/]")
        sys.exit(2)
    console.print(external_id)


def _cmd_resolve(args: argparse.Namespace) -> None:
    """Resolve metadata through the configured API key and print it as JSON.

    Args:
        args: The command-line arguments.
    """
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))

    async def _run():
        async with httpx.AsyncClient(timeout=settings.http_timeout_s) as client:
            resolver = YouTubeMetadataClient(
                client,
                settings.secrets.youtube_api_key,
                base_url=settings.youtube_api_base_url,
            )
            return await resolver.resolve(args.external_id)

    metadata = asyncio.run(_run())
    if metadata is None:
        console.print(f"[red]Could not resolve {args.external_id}[/]")
        sys.exit(3)
    payload = asdict(metadata)
    if metadata.published_at is not None:
        payload["published_at"] = metadata.published_at.isoformat()
    payload["duration_display"] = format_duration(metadata.duration_raw)
    console.print_json(data=payload)


def _cmd_init_db(args: argparse.Namespace) -> None:
    settings = get_settings()

    async def _run() -> None:
        engine = create_engine(settings)
        try:
            await create_schema(engine)
        finally:
            await engine.dispose()

    asyncio.run(_run())
    console.print(f"[green]Catalog schema ensured at {settings.database_url}[/]")


def _cmd_ingest(args: argparse.Namespace) -> None:
    """Create one record from the command line, using the configured store and blob storage.

    Args:
        args: The command-line arguments.
    """
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    payload = IntakePayload(
        source_variant=args.variant,
        external_url=args.url,
        embed_markup=args.embed,
        uploaded_file_ref=args.file_ref,
        title=args.title,
        description=args.description,
        author=args.author,
        thumbnail_url=args.thumbnail_url,
    )

    async def _run() -> dict:
        engine = create_engine(settings)
        session_factory = create_session_factory(engine)
        storage = get_storage(settings)
        try:
            await create_schema(engine)
            async with httpx.AsyncClient(timeout=settings.http_timeout_s) as client:
                async with session_factory() as session:
                    service = IngestService(settings, storage, session, client)
                    result = await service.create(payload)
                    return {
                        "record": VideoResponse.from_record(result.record).model_dump(mode="json"),
                        "resolution": result.resolution.value,
                        "warnings": list(result.warnings),
                    }
        finally:
            await engine.dispose()

    try:
        output = asyncio.run(_run())
    except SubmissionValidationError as exc:
        for message in exc.messages:
            console.print(f"[red]{message}[/]")
        sys.exit(2)
    except IngestionError as exc:
        console.print(f"[red]Ingestion failed:[/] {exc}")
        sys.exit(3)

    console.print_json(data=output)
    for warning in output["warnings"]:
        console.print(f"[yellow]warning:[/] {warning}")


if __name__ == "__main__":
    main()
