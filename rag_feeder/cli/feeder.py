"""CLI for feeding documents into the knowledge base and querying it.

Usage::

    # Ingest a pre-extracted text file and wait for its run to finish
    python -m rag_feeder.cli text --tenant acme --title "Oil Filter Torque Spec" \\
        --type manual --file torque.txt

    # Transcribe scanned pages with the vision model, then ingest
    python -m rag_feeder.cli vision --tenant acme --title "Service Bulletin 12" \\
        page1.png page2.png

    # Poll one document, or list all of a tenant's documents
    python -m rag_feeder.cli status --tenant acme --document-id <id>
    python -m rag_feeder.cli status --tenant acme

    # Query
    python -m rag_feeder.cli search --tenant acme "oil filter torque"
    python -m rag_feeder.cli chat --tenant acme "What torque for the oil filter?"

    # Maintenance
    python -m rag_feeder.cli reprocess --tenant acme <document-id>
    python -m rag_feeder.cli delete --tenant acme <document-id>

Components are wired exactly as the API server wires them, from the same
``.env`` / environment settings.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator

from rag_feeder.utils.errors import RagFeederError

if TYPE_CHECKING:
    from rag_feeder.models.rag import IngestionAccepted
    from rag_feeder.pipeline.rag_feeder import RagFeeder


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _feeder_session() -> AsyncIterator[RagFeeder]:
    """Build the component graph, yield the feeder, and drain runs on exit."""
    from rag_feeder.config.settings import Settings
    from rag_feeder.main import build_components, close_components

    app_settings = Settings()
    components = build_components(app_settings)
    await components["document_store"].initialize()
    try:
        yield components["feeder"]
    finally:
        await close_components(components, app_settings.shutdown_timeout_seconds)


async def _wait_and_report(feeder: RagFeeder, accepted: IngestionAccepted, tenant_id: str) -> int:
    print(f"Document {accepted.document_id}: {accepted.chunk_count_planned} chunks planned")
    if accepted.warning:
        print(f"  Warning: {accepted.warning}")
    await feeder.supervisor.wait(accepted.document_id)
    document = await feeder.get_document(accepted.document_id, tenant_id)
    print(f"  Status: {document.processing_status.value} ({document.chunk_count} chunks stored)")
    if document.error_message:
        print(f"  {document.error_message}")
    return 0 if document.processing_status.value != "failed" else 1


def _split_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_text(args: argparse.Namespace) -> int:
    """Ingest the contents of a UTF-8 text file."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1
    content = path.read_text(encoding="utf-8")

    async with _feeder_session() as feeder:
        accepted = await feeder.ingest_text(
            title=args.title,
            content=content,
            tenant_id=args.tenant,
            description=args.description or "",
            document_type=args.type,
            tags=_split_tags(args.tags),
            file_name=path.name,
            file_size=path.stat().st_size,
            file_path=str(path),
        )
        return await _wait_and_report(feeder, accepted, args.tenant)


async def _handle_vision(args: argparse.Namespace) -> int:
    """Transcribe page images in the given order, then ingest the text."""
    from rag_feeder.models.rag import PageImage

    paths = [Path(p) for p in args.images]
    missing = [str(p) for p in paths if not p.is_file()]
    if missing:
        print(f"Error: file(s) not found: {', '.join(missing)}", file=sys.stderr)
        return 1
    pages = [PageImage(image_data=p.read_bytes(), page_number=i) for i, p in enumerate(paths, start=1)]

    async with _feeder_session() as feeder:
        accepted = await feeder.ingest_vision(
            title=args.title,
            images=pages,
            tenant_id=args.tenant,
            description=args.description,
            document_type=args.type,
            tags=_split_tags(args.tags),
            file_name=paths[0].name,
            file_size=sum(p.stat().st_size for p in paths),
        )
        if accepted.pages_processed is not None:
            print(f"Transcribed {accepted.pages_processed}/{len(pages)} pages")
        return await _wait_and_report(feeder, accepted, args.tenant)


async def _handle_status(args: argparse.Namespace) -> int:
    async with _feeder_session() as feeder:
        if args.document_id:
            documents = [await feeder.get_document(args.document_id, args.tenant)]
        else:
            documents = await feeder.list_documents(args.tenant)

    if not documents:
        print("No documents.")
        return 0

    print(f"{'Document ID':<38} {'Status':<18} {'Chunks':>6}  Title")
    print("-" * 90)
    for doc in documents:
        print(f"{doc.document_id:<38} {doc.processing_status.value:<18} {doc.chunk_count:>6}  {doc.title}")
        if doc.error_message:
            print(f"{'':<38} {doc.error_message}")
    return 0


async def _handle_search(args: argparse.Namespace) -> int:
    async with _feeder_session() as feeder:
        hits = await feeder.search(
            args.query,
            args.tenant,
            top_k=args.top_k,
            min_similarity=args.min_similarity,
        )

    if not hits:
        print("No matching chunks.")
        return 0
    for rank, hit in enumerate(hits, start=1):
        preview = hit.chunk.content[:160].replace("\n", " ")
        print(f"{rank:>2}. [{hit.similarity:.3f}] {hit.chunk.document_id}#{hit.chunk.chunk_index}")
        print(f"    {preview}")
    return 0


async def _handle_chat(args: argparse.Namespace) -> int:
    async with _feeder_session() as feeder:
        result = await feeder.chat(args.query, args.tenant, external_context=args.context)

    print(result.answer)
    if result.sources:
        print("\nSources:")
        for source in result.sources:
            indices = ", ".join(str(c.source_index) for c in source.chunks)
            print(f"  [{indices}] {source.title} (similarity {source.similarity:.3f})")
    return 0


async def _handle_reprocess(args: argparse.Namespace) -> int:
    async with _feeder_session() as feeder:
        accepted = await feeder.reprocess(args.document_id, args.tenant)
        print(f"Reprocessing {accepted.document_id}: {accepted.chunk_count_planned} chunks planned")
        await feeder.supervisor.wait(accepted.document_id)
        document = await feeder.get_document(accepted.document_id, args.tenant)
    print(f"  Status: {document.processing_status.value} ({document.chunk_count} chunks stored)")
    return 0 if document.processing_status.value != "failed" else 1


async def _handle_delete(args: argparse.Namespace) -> int:
    async with _feeder_session() as feeder:
        result = await feeder.delete_document(args.document_id, args.tenant)
    print(f"Deleted {result.document_id} ({result.chunks_deleted} chunks)")
    return 0


_HANDLERS = {
    "text": _handle_text,
    "vision": _handle_vision,
    "status": _handle_status,
    "search": _handle_search,
    "chat": _handle_chat,
    "reprocess": _handle_reprocess,
    "delete": _handle_delete,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the feeder CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m rag_feeder.cli",
        description="Feed documents into the rag-feeder knowledge base and query it.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Feeder commands")

    def _with_tenant(sub: argparse.ArgumentParser) -> argparse.ArgumentParser:
        sub.add_argument("--tenant", required=True, help="Owning company / tenant id")
        return sub

    def _with_metadata(sub: argparse.ArgumentParser, default_type: str | None) -> None:
        sub.add_argument("--title", required=True, help="Document title")
        sub.add_argument("--description", default=None, help="Document description")
        sub.add_argument(
            "--type",
            default=default_type,
            help=f"Document type (default: {default_type or 'from config'})",
        )
        sub.add_argument("--tags", default=None, help="Comma-separated tags")

    # -- text --
    text_parser = _with_tenant(subparsers.add_parser("text", help="Ingest a pre-extracted text file"))
    _with_metadata(text_parser, "text")
    text_parser.add_argument("--file", required=True, help="Path to a UTF-8 text file")

    # -- vision --
    vision_parser = _with_tenant(
        subparsers.add_parser("vision", help="Transcribe page images and ingest the text")
    )
    _with_metadata(vision_parser, None)
    vision_parser.add_argument("images", nargs="+", help="Page images, in page order")

    # -- status --
    status_parser = _with_tenant(subparsers.add_parser("status", help="Show document processing status"))
    status_parser.add_argument("--document-id", default=None, help="Show a single document")

    # -- search --
    search_parser = _with_tenant(subparsers.add_parser("search", help="Semantic search over chunks"))
    search_parser.add_argument("query", help="Search text")
    search_parser.add_argument("--top-k", type=int, default=None, help="Maximum results")
    search_parser.add_argument(
        "--min-similarity", type=float, default=None, help="Minimum cosine similarity (0-1)"
    )

    # -- chat --
    chat_parser = _with_tenant(subparsers.add_parser("chat", help="Ask a question, get a cited answer"))
    chat_parser.add_argument("query", help="Question")
    chat_parser.add_argument("--context", default=None, help="External context (e.g. vehicle details)")

    # -- reprocess --
    reprocess_parser = _with_tenant(
        subparsers.add_parser("reprocess", help="Re-chunk and re-embed a stored document")
    )
    reprocess_parser.add_argument("document_id", help="Document to reprocess")

    # -- delete --
    delete_parser = _with_tenant(subparsers.add_parser("delete", help="Delete a document and its chunks"))
    delete_parser.add_argument("document_id", help="Document to delete")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the feeder tool."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    handler = _HANDLERS.get(args.command) if args.command else None
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = asyncio.run(handler(args))
    except RagFeederError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
