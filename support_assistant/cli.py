"""Command line interface for the support assistant."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from .config import Settings, load_settings
from .models import DocumentStatus, SourceType
from .services import Services, build_services
from .utils.logger import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Support Assistant CLI")
    parser.add_argument(
        "--store-dir",
        type=Path,
        help="Directory used to persist documents, chunks and vectors (default: data/store)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a JSON configuration file overriding settings",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest_parser = subparsers.add_parser("ingest", help="Add a document and index it")
    source = ingest_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", help="Inline document text")
    source.add_argument("--file", type=Path, help="Path to a text or Markdown file")
    source.add_argument("--web-url", help="Website URL to crawl")
    source.add_argument("--document-id", help="Re-index an existing document")
    ingest_parser.add_argument("--name", help="Document name (default: derived from the source)")
    ingest_parser.add_argument("--language", help="Document language, en or pt")

    ask_parser = subparsers.add_parser("ask", help="Answer a single question")
    ask_parser.add_argument("question", help="Question to answer")
    ask_parser.add_argument("--language", help="Reply language, en or pt")
    ask_parser.add_argument(
        "--max-results",
        type=int,
        help="Number of documents to retrieve for the question",
    )
    ask_parser.add_argument(
        "--no-documents",
        action="store_true",
        help="Answer without consulting the document corpus",
    )

    chat_parser = subparsers.add_parser("chat", help="Start an interactive chat session")
    chat_parser.add_argument("--language", help="Reply language, en or pt")
    chat_parser.add_argument(
        "--max-results",
        type=int,
        help="Number of documents to retrieve for each query",
    )

    subparsers.add_parser("recover-stuck", help="Move stale processing documents to error")

    web_parser = subparsers.add_parser("web", help="Launch the HTTP API")
    web_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the web server (default: 127.0.0.1)",
    )
    web_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the web server (default: 8000)",
    )

    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.store_dir is not None:
        overrides["store_dir"] = args.store_dir
    if args.log_level:
        overrides["log_level"] = args.log_level
    return load_settings(args.config, **overrides)


async def _ingest(services: Services, args: argparse.Namespace) -> int:
    if args.document_id:
        document_id = args.document_id
    else:
        if args.text is not None:
            document = services.create_document(
                args.name or "Inline text", raw_content=args.text, language=args.language
            )
        elif args.file is not None:
            document = services.create_document(
                args.name or args.file.stem,
                source_type=SourceType.FILE,
                source_ref=str(args.file),
                language=args.language,
            )
        else:
            document = services.create_document(
                args.name or args.web_url,
                source_type=SourceType.WEBSITE,
                source_ref=args.web_url,
                language=args.language,
            )
        document_id = document.id

    ok = await services.indexer.index_document(document_id)
    document = services.datastore.get_document(document_id)
    if ok:
        print(
            f"Indexed document {document.id} ({document.name}): "
            f"{document.metadata.get('embedded_count')}/{document.metadata.get('chunk_count')} chunks embedded."
        )
        return 0
    print(f"Indexing failed for document {document_id}: {document.error_message}")
    return 1


def _print_response(response) -> None:
    print("\n" + response.answer + "\n")
    if response.references:
        print("References:")
        for result in response.references:
            print(f"- {result.citation} (score={result.relevance_score:.3f}, tier={result.source_tier})")
        print()


async def _chat(services: Services, args: argparse.Namespace) -> None:
    print("Enter your questions. Press Ctrl+C or Ctrl+D to exit.\n")
    try:
        while True:
            question = (await asyncio.to_thread(input, "?> ")).strip()
            if not question:
                continue
            response = await services.engine.ask(
                question, language=args.language, max_results=args.max_results
            )
            _print_response(response)
    except (KeyboardInterrupt, EOFError):  # pragma: no cover - interactive session
        print("\nGoodbye!")


def main(argv: List[str] | None = None) -> Optional[int]:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = _settings_from_args(args)
    configure_logging(settings.log_level)

    if args.command == "web":
        import uvicorn

        from .web.app import create_app

        app = create_app(settings)
        uvicorn.run(app, host=args.host, port=args.port)
        return 0

    services = build_services(settings)

    if args.command == "ingest":
        return asyncio.run(_ingest(services, args))

    if args.command == "ask":
        response = asyncio.run(
            services.engine.ask(
                args.question,
                use_documents=not args.no_documents,
                language=args.language,
                max_results=args.max_results,
            )
        )
        _print_response(response)
        return 0

    if args.command == "chat":
        asyncio.run(_chat(services, args))
        return 0

    if args.command == "recover-stuck":
        recovered = services.health.recover_stuck()
        for document in recovered:
            print(f"- {document.id} ({document.name}): {document.error_message}")
        pending = len(services.datastore.list_documents(status=DocumentStatus.PROCESSING))
        print(f"Recovered {len(recovered)} documents; {pending} still processing.")
        return 0

    return None


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
