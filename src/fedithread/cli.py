import argparse
import json
import logging
import os
import sys

from .config import ThreadConfig
from .errors import SanitizeError, ThreadError
from .html_sanitizer import sanitize
from .models import Resolved, ThreadNode


def _outline_line(post, depth: int) -> str:
    published = f" ({post.published})" if post.published else ""
    return f"{'  ' * depth}- {post.author}{published}: {post.id}"


def _print_outline(root: ThreadNode) -> None:
    print(_outline_line(root.post, 0))
    for depth, reply in root.walk():
        if isinstance(reply, Resolved):
            print(_outline_line(reply.node.post, depth))
        else:
            reference = reply.reference or "<inline>"
            print(f"{'  ' * depth}- [missing] {reference}: {reply.reason}")


def _run_fetch(args) -> int:
    from .thread import load_thread_sync

    config = ThreadConfig.from_env()
    if args.max_pages is not None:
        config.max_pages = args.max_pages
    if args.timeout is not None:
        config.timeout = args.timeout
    try:
        thread = load_thread_sync(args.url, config=config)
    except ThreadError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    if args.json:
        print(json.dumps(thread.to_dict(), indent=2))
    else:
        _print_outline(thread)
    return 0


def _run_sanitize(args) -> int:
    if args.file == "-":
        text = sys.stdin.read()
    else:
        with open(args.file, "r", encoding="utf-8") as f:
            text = f.read()
    try:
        sys.stdout.write(sanitize(text))
    except SanitizeError as exc:
        print(f"error: {exc} at offset {exc.position}", file=sys.stderr)
        return 1
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Browse ActivityPub reply threads")
    parser.add_argument(
        "--log-level",
        default=os.getenv("FEDITHREAD_LOG_LEVEL", "WARNING"),
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_p = subparsers.add_parser("fetch", help="Load a thread and print it")
    fetch_p.add_argument("url", help="URL of the root post")
    fetch_p.add_argument("--json", action="store_true", help="Print the tree as JSON")
    fetch_p.add_argument(
        "--max-pages", type=int, help="Maximum pages per reply collection"
    )
    fetch_p.add_argument("--timeout", type=float, help="Request timeout in seconds")

    sanitize_p = subparsers.add_parser(
        "sanitize", help="Clean an HTML fragment from a file or stdin"
    )
    sanitize_p.add_argument("file", nargs="?", default="-")

    serve_p = subparsers.add_parser("serve", help="Launch the web viewer")
    serve_p.add_argument("--host", default="127.0.0.1")
    serve_p.add_argument("--port", type=int, default=3000)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "fetch":
        return _run_fetch(args)
    if args.command == "sanitize":
        return _run_sanitize(args)
    if args.command == "serve":
        import uvicorn

        from .fastapi_app import app

        uvicorn.run(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
