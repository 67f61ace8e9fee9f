"""Command line entry point: ``python -m cadence``."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence

from cadence.config import load_config
from cadence.logging import configure_logging, get_logger
from cadence.services.media_repository import build_repository

logger = get_logger(__name__)


async def _list_providers() -> list[dict[str, object]]:
    repository = build_repository()
    stream = repository.all_providers()
    try:
        providers = await anext(stream)
    finally:
        await stream.aclose()
        await repository.aclose()
    return [
        {"type": provider.type.value, "id": provider.type_id, "name": provider.name}
        for provider in providers
    ]


def _cli(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Cadence media providers")
    parser.add_argument(
        "command",
        choices=["providers"],
        help="List the local provider and every configured Subsonic server",
    )
    args = parser.parse_args(argv)

    config = load_config()
    configure_logging(config.logging.level, config.logging.log_file)
    logger.debug("Running command %s", args.command)

    providers = asyncio.run(_list_providers())
    print(json.dumps(providers, indent=2))
    return 0


def main() -> None:
    raise SystemExit(_cli())


if __name__ == "__main__":
    main()
