#!/usr/bin/env python3
"""Daily Digest — Preview.

Builds one digest from the live sources and prints it, without sending
anything or touching locks, markers or pending messages. Source caches
go to a throwaway in-memory store.

Usage:
    python scripts/preview.py
    python scripts/preview.py --debug   # append the source status block
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from daily_digest.config import load_config  # noqa: E402
from daily_digest.digest.composer import DigestBuilder  # noqa: E402
from daily_digest.sources.client import SourceClient  # noqa: E402
from daily_digest.store.memory import MemoryStore  # noqa: E402


async def preview(debug: bool) -> str:
    config = load_config()
    if debug:
        config = dataclasses.replace(
            config,
            delivery=dataclasses.replace(config.delivery, include_debug_sources=True),
        )
    async with SourceClient(config.sources) as client:
        builder = DigestBuilder(config, client, MemoryStore())
        digest = await builder.build()
    return digest.text


def main() -> None:
    parser = argparse.ArgumentParser(description="Print one digest without sending it")
    parser.add_argument("--debug", action="store_true", help="append source statuses")
    args = parser.parse_args()

    print(asyncio.run(preview(args.debug)))


if __name__ == "__main__":
    main()
