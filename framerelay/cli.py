"""CLI tool for FrameRelay: fetch a page through the fallback chain, or run the server.

Usage:
    python -m framerelay.cli fetch https://example.com
    python -m framerelay.cli fetch https://example.com --no-instrument -o page.html
    python -m framerelay.cli serve --port 5000
"""

import argparse
import asyncio
import logging
import sys


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


async def _cmd_fetch(args) -> int:
    """Acquire one page and write the delivered document."""
    from framerelay.config import settings
    from framerelay.schemas.content import ContentRequest
    from framerelay.services import readiness
    from framerelay.services.executor import StrategyExecutor
    from framerelay.services.fallback import FallbackChain
    from framerelay.services.strategies import default_strategies

    target_url = ContentRequest(target_url=args.url).target_url
    if not target_url:
        print("[ERROR] a URL is required", file=sys.stderr)
        return 2

    chain = FallbackChain(
        strategies=default_strategies(settings),
        executor=StrategyExecutor(max_redirects=settings.MAX_REDIRECTS),
    )
    outcome = await chain.acquire(target_url)
    document = outcome.html if args.no_instrument else readiness.inject(outcome.html)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as fh:
            fh.write(document)
    else:
        sys.stdout.write(document)

    for attempt in outcome.attempts:
        status = "ok" if attempt.ok else attempt.error
        print(f"  {attempt.strategy_id}: {status} ({attempt.elapsed_ms}ms)", file=sys.stderr)
    print(
        f"\nSource: {outcome.source_strategy.value}"
        f" (strategy: {outcome.strategy_id or 'none'}, {len(document)} chars)",
        file=sys.stderr,
    )
    return 1 if outcome.is_placeholder else 0


def _cmd_serve(args):
    import uvicorn

    from framerelay.config import settings

    uvicorn.run(
        "framerelay.main:app",
        host=args.host,
        port=args.port or settings.PORT,
        log_config=None,
    )


def main():
    parser = argparse.ArgumentParser(
        prog="framerelay",
        description="FrameRelay CLI: fetch pages for framing, or run the relay server",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # --- fetch ---
    fetch_parser = subparsers.add_parser(
        "fetch", parents=[common], help="Fetch a page through the fallback chain")
    fetch_parser.add_argument("url", help="URL to fetch (https:// is assumed when missing)")
    fetch_parser.add_argument(
        "--no-instrument", action="store_true",
        help="Skip the readiness overlay injection",
    )
    fetch_parser.add_argument("-o", "--output", default=None, help="Write the document to FILE")

    # --- serve ---
    serve_parser = subparsers.add_parser("serve", parents=[common], help="Run the HTTP server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: PORT setting)")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    _setup_logging(args.verbose)

    if args.command == "fetch":
        sys.exit(asyncio.run(_cmd_fetch(args)))
    elif args.command == "serve":
        _cmd_serve(args)


if __name__ == "__main__":
    main()
