#!/usr/bin/env python3
"""
Smoke test: index a local checkout and stream answers to a few questions.

Usage:
  python scripts/smoke_chat.py /path/to/repo
  python scripts/smoke_chat.py /path/to/repo --provider ollama -q "How is config loaded?"

Options:
  --provider   Provider name to activate (default: Settings.default_provider)
  -q/--query   Question to ask; repeat for a dialogue (default: built-in set)
  --rebuild    Drop the cached corpus before indexing
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from repochat.config.settings import settings
from repochat.container import configure_container
from repochat.core.models.chat import ChatRequest
from repochat.core.protocols.embedder import EmbedderProtocol
from repochat.core.services.chat_service import ChatService
from repochat.core.services.ingest_service import DocumentIndexer, derive_repo_id
from repochat.core.services.provider_registry import ProviderRegistry

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

DIALOGUE = [
    "What does this project do?",
    "Where is the configuration loaded?",
    "How is that configuration used at startup?",
]


async def run(args: argparse.Namespace) -> int:
    container = configure_container(settings)
    registry = container.resolve(ProviderRegistry)
    if args.provider:
        registry.set_active(args.provider)

    if settings.embedding_model:
        container.resolve(EmbedderProtocol).warmup()

    if args.rebuild:
        indexer = container.resolve(DocumentIndexer)
        await indexer.start(args.repo, derive_repo_id(args.repo), rebuild=True)

    chat = container.resolve(ChatService)
    failures = 0
    try:
        for query in args.query or DIALOGUE:
            print(f"\n>>> {query}")
            started = time.monotonic()
            stream = chat.stream(ChatRequest(query=query, repo_id=args.repo, session_id="smoke"))
            async with stream:
                async for fragment in stream:
                    if fragment.is_error:
                        failures += 1
                        print(f"\n[error] {fragment.text}")
                    else:
                        print(fragment.text, end="", flush=True)
            print(f"\n({time.monotonic() - started:.1f}s)")
    finally:
        await registry.aclose_all()

    return 1 if failures else 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("repo", help="Local repository checkout")
    parser.add_argument("--provider", default=None)
    parser.add_argument("-q", "--query", action="append")
    parser.add_argument("--rebuild", action="store_true")
    sys.exit(asyncio.run(run(parser.parse_args())))


if __name__ == "__main__":
    main()
