#!/usr/bin/env python3
"""
Write the OpenAPI document of the e-commerce REST API.

The document covers the products, orders and order events routes and is built
from their powertools resolvers.

    python scripts/generate_openapi.py --format json --pretty --check -o build/
"""

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

from ecommerce.handlers.utils.openapi import build_openapi_spec, render_openapi_spec, validate_openapi_spec


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Write the OpenAPI document of the e-commerce REST API")
    parser.add_argument("--format", choices=["json", "yaml"], default="yaml")
    parser.add_argument("-o", "--output-dir", default=".", help="directory receiving the document")
    parser.add_argument("--name", help="file name, openapi.<format> by default")
    parser.add_argument("--check", action="store_true", help="fail when the document misses required fields")
    parser.add_argument("--pretty", action="store_true", help="indent JSON output")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    document = build_openapi_spec()
    document["info"]["x-generated-at"] = datetime.now(timezone.utc).isoformat()

    if args.check:
        problems = validate_openapi_spec(document)
        for problem in problems:
            print(f"invalid document: {problem}", file=sys.stderr)
        if problems:
            return 1

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / (args.name or f"openapi.{args.format}")
    target.write_text(render_openapi_spec(document, args.format, pretty=args.pretty), encoding="utf-8")

    print(f"{len(document.get('paths', {}))} paths written to {target}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
