"""Entry point: python -m specgen SPEC [-c CONFIG] [-o OUTPUT] [-v]

Loads an OpenAPI document, resolves it, and writes the models module.
"""

from __future__ import annotations

import argparse
import logging
import sys

from .codegen import OUTPUT_PATH, generate
from .config import load_config
from .context_builder import build_context
from .errors import SpecgenError
from .loader import load_document
from .pipeline import resolve_document

logger = logging.getLogger("specgen")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="specgen",
        description="Resolve an OpenAPI document into named, typed declarations.",
    )
    parser.add_argument("spec", help="Path or http(s) URL of the OpenAPI document")
    parser.add_argument("-c", "--config", help="YAML or JSON configuration file")
    parser.add_argument(
        "-o", "--output", default=str(OUTPUT_PATH),
        help=f"Where to write the models module (default: {OUTPUT_PATH})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(args.config)
        document = load_document(args.spec)
        graph = resolve_document(document, config)
        context = build_context(graph, config)
        generate(context, args.output)
    except (SpecgenError, OSError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
