import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from dotenv import find_dotenv, load_dotenv

from .errors import CurlParserError
from .parser import CurlParser

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _var(value: str) -> tuple[str, Any]:
    # NAME=VALUE; VALUE is decoded as JSON when it parses, so numbers and objects keep their type.
    name, sep, raw = value.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {value!r}")
    try:
        return name, json.loads(raw)
    except ValueError:
        return name, raw


def _existing_path(value: str) -> Path:
    p = Path(value)
    if not p.exists():
        raise argparse.ArgumentTypeError(f"path not found: {value}")
    return p


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="curl-parser",
        description="Convert a curl command into a structured HTTP request (printed as JSON).",
    )
    parser.add_argument("file", nargs="?", default="-", help="file holding the curl command (default: stdin)")
    parser.add_argument("--context", type=_existing_path, default=None, help="JSON file with template variables")
    parser.add_argument("--var", type=_var, action="append", default=[], help="template variable NAME=VALUE")
    parser.add_argument("--no-parse-url", action="store_true", help="keep the URL verbatim")
    parser.add_argument("--env-file", type=_existing_path, default=None, help=".env file with secrets")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def _read_command(file: str) -> str:
    if file == "-":
        return sys.stdin.read()
    return Path(file).read_text(encoding="utf-8")


def _build_context(args: argparse.Namespace) -> Optional[dict[str, Any]]:
    if args.context is None and not args.var:
        return None
    context: dict[str, Any] = {}
    if args.context is not None:
        loaded = json.loads(args.context.read_text(encoding="utf-8"))
        if not isinstance(loaded, dict):
            raise CurlParserError("--context must hold a JSON object")
        context.update(loaded)
    context.update(dict(args.var))
    return context


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.env_file is not None:
        load_dotenv(args.env_file)
    else:
        load_dotenv(find_dotenv(usecwd=True))

    parse_url = not args.no_parse_url
    if os.getenv("CURL_PARSER_NO_PARSE_URL", "").strip().lower() in _TRUTHY:
        parse_url = False

    try:
        text = _read_command(args.file)
        context = _build_context(args)
        request = CurlParser(parse_url=parse_url).load(text, context)
    except (ValueError, OSError) as e:
        print(f"curl-parser: {e}", file=sys.stderr)
        return 1

    logger.debug("parsed %s %s", request.method, request.url)
    print(json.dumps(request.to_dict(), indent=2))
    return 0
