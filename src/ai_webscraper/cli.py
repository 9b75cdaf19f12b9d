"""Command-line entry point: ``ai-webscraper``.

Usage::

    # One page, two fields
    ai-webscraper https://example.com --field title=string --field price=number

    # Many pages, rendered in the browser, five at a time
    ai-webscraper https://a.example https://b.example --field title=string \\
        --javascript --concurrency 5

Results are printed to stdout as a JSON array (one object per URL, in input
order).  Logs go to stderr.  The exit code is 1 when any URL failed.

Environment:
    ``OPENAI_API_KEY`` or ``GEMINI_API_KEY`` (or ``--api-key``), plus any
    other :class:`~ai_webscraper.config.settings.Settings` field.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from typing import Optional

from ai_webscraper.client import create_scraper
from ai_webscraper.config.providers import AIModel
from ai_webscraper.config.settings import get_settings
from ai_webscraper.core.exceptions import WebScraperError
from ai_webscraper.core.logging_config import configure_logging
from ai_webscraper.core.models import ExtractionResult


def parse_field(value: str) -> tuple[str, str]:
    """Parse one ``name=type`` schema field argument."""
    name, sep, type_hint = value.partition("=")
    if not sep or not name.strip() or not type_hint.strip():
        raise argparse.ArgumentTypeError(f"expected name=type, got {value!r}")
    return name.strip(), type_hint.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ai-webscraper",
        description="Extract structured data from web pages with an AI model",
    )
    parser.add_argument("urls", nargs="+", metavar="URL", help="Page(s) to extract from")
    parser.add_argument(
        "--field",
        dest="fields",
        action="append",
        type=parse_field,
        required=True,
        metavar="NAME=TYPE",
        help="Schema field to extract (repeatable), e.g. --field price=number",
    )
    parser.add_argument(
        "--model",
        choices=[model.value for model in AIModel],
        default=None,
        help="AI model (default: AI_MODEL setting)",
    )
    parser.add_argument("--api-key", default=None, help="Provider API key (default: from environment)")
    parser.add_argument("--concurrency", type=int, default=None, help="URLs processed at the same time")
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Process URLs in sequential chunks of this size",
    )
    parser.add_argument(
        "--javascript",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Render pages in a headless browser first; --no-javascript forces plain HTTP "
        "(default: PREFER_SCRIPT setting)",
    )
    parser.add_argument("--instructions", default=None, help="Extra guidance for the AI model")
    parser.add_argument("--max-retries", type=int, default=None, help="Retries per URL (default: 2)")
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort the batch on the first failed URL",
    )
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    return parser


async def _run(args: argparse.Namespace) -> list[ExtractionResult]:
    schema = dict(args.fields)
    async with await create_scraper(args.model, args.api_key) as scraper:
        if len(args.urls) == 1 and args.chunk_size is None:
            result = await scraper.extract_from_url(
                args.urls[0],
                schema,
                use_script=args.javascript,
                instructions=args.instructions,
                max_retries=args.max_retries,
            )
            return [result]

        batch_kwargs = {
            "concurrency": args.concurrency,
            "continue_on_error": not args.fail_fast,
            "use_script": args.javascript,
            "instructions": args.instructions,
            "max_retries": args.max_retries,
            "keep_failures": True,
        }
        if args.chunk_size is not None:
            return await scraper.extract_in_chunks(
                args.urls, schema, chunk_size=args.chunk_size, **batch_kwargs
            )
        return await scraper.extract_from_urls(args.urls, schema, **batch_kwargs)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or get_settings().log_level)

    try:
        results = asyncio.run(_run(args))
    except WebScraperError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    json.dump([result.to_json() for result in results], sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0 if all(result.success for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
