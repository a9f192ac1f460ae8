from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from imagegen_bridge.config import load_config
from imagegen_bridge.logs import configure_logging, stderr_console
from imagegen_bridge.service import ImageToolService
from imagegen_bridge.tasks.batch_plan import load_batch_definition
from imagegen_bridge.types import Provider, SizeOptions


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run a batch of prompts against one image provider."
    )
    parser.add_argument(
        "batch_file",
        type=Path,
        help="Path to the JSON array of {prompt, saveToFilePath?} entries.",
    )
    parser.add_argument(
        "--provider",
        choices=[provider.value for provider in Provider],
        default=Provider.NANO_BANANA.value,
        help="Provider to use (default: nano_banana).",
    )
    parser.add_argument("--concurrency", type=int, default=None, help="Concurrent requests (default 3).")
    parser.add_argument("--image-size", choices=["1K", "2K", "4K"], default=None)
    parser.add_argument("--aspect-ratio", type=str, default=None)
    parser.add_argument("--size", type=str, default=None, help="GLM size such as 1280x1280.")
    parser.add_argument(
        "--dotenv",
        type=Path,
        default=None,
        help="Optional path to a .env file containing provider credentials.",
    )
    return parser.parse_args()


async def run(args: argparse.Namespace) -> int:
    config = load_config(args.dotenv)
    batch = load_batch_definition(args.batch_file)
    provider = Provider(args.provider)
    options = SizeOptions(image_size=args.image_size, aspect_ratio=args.aspect_ratio, size=args.size)

    service = ImageToolService(config)
    try:
        results = await service.batch_runner(console=stderr_console).run_batch(
            batch.to_jobs(provider, options), args.concurrency or config.default_concurrency
        )
    finally:
        await service.aclose()

    print(json.dumps([result.to_dict() for result in results], ensure_ascii=False, indent=2))
    failures = sum(1 for result in results if not result.success)
    if failures:
        stderr_console.print(f"[yellow]{failures} of {len(results)} jobs failed[/yellow]")
        return 1
    stderr_console.print(f"[green]All {len(results)} images generated[/green]")
    return 0


def main() -> None:
    args = parse_args()
    configure_logging()
    if not args.batch_file.exists():
        stderr_console.print(f"[red]Batch file not found:[/red] {args.batch_file}")
        raise SystemExit(1)
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
