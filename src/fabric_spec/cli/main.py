from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Sequence

from ..domain.models import SchemaGeneration
from ..errors import FabricSpecError
from ..logging import get_logger
from ..paths import expand_abs
from ..specdb import FabricSpecService
from ..specdb.images import data_url_from_path
from ..specdb.inventory import label_material
from ..specdb.service import review_payload

LOG = get_logger("fabric-spec-cli")


def _print_json(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _init(_: argparse.Namespace) -> int:
    svc = FabricSpecService(root_dir=os.getcwd())
    path = svc.init_database()
    LOG.info(f"Fabric spec DB ready at: {path}")
    print(path)
    return 0


def _analyze(ns: argparse.Namespace) -> int:
    svc = FabricSpecService(root_dir=os.getcwd())
    data_url = data_url_from_path(expand_abs(ns.image))
    # Extracted records are printed or committed directly; nothing is left pending.
    _, payload, record = svc.extract(data_url, ns.generation)
    review = review_payload({"session_id": None, "payload": payload, "record": record})
    if not ns.commit:
        _print_json(review)
        return 0
    if review["needs_attention"]:
        LOG.warning("Committing with fields still needing manual entry: %s", ", ".join(review["needs_attention"]))
    stored = svc.commit_record(record)
    _print_json(stored.as_dict())
    return 0


def _lookup(ns: argparse.Namespace) -> int:
    svc = FabricSpecService(root_dir=os.getcwd())
    result = svc.lookup_material(ns.code)
    if not result.found:
        LOG.info("조회 결과가 없습니다: %s", result.code)
        print("[]")
        return 0
    if ns.raw:
        _print_json(result.raw)
        return 0
    for record in result.records:
        print(f"== {record.artcno or result.code}")
        for row in label_material(record):
            print(f"  {row['label']}: {row['value']}")
    return 0


def _serve(ns: argparse.Namespace) -> int:
    from ..specdb.frontend import create_app
    import uvicorn

    app = create_app(
        root_dir=os.getcwd(),
        static_dir=ns.static_dir,
        allow_origins=ns.allow_origins,
        serve_static=not ns.api_only,
    )
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fabric-spec",
        description="Extract, review and store textile specification sheets.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_cmd = subparsers.add_parser("init", help="Create/ensure the fabric spec DB schema exists")
    init_cmd.set_defaults(handler=_init)

    analyze_cmd = subparsers.add_parser("analyze", help="Extract fields from a spec sheet photo")
    analyze_cmd.add_argument("--image", required=True, help="Path to the sheet image (JPG/PNG)")
    analyze_cmd.add_argument(
        "--generation",
        choices=[g.value for g in SchemaGeneration],
        help="Extraction schema (default: FABRIC_SPEC_GENERATION or structured)",
    )
    analyze_cmd.add_argument("--commit", action="store_true", help="Store the result without interactive review")
    analyze_cmd.set_defaults(handler=_analyze)

    lookup_cmd = subparsers.add_parser("lookup", help="Look up a material code in the inventory service")
    lookup_cmd.add_argument("--code", required=True)
    lookup_cmd.add_argument("--raw", action="store_true", help="Print the upstream JSON unchanged")
    lookup_cmd.set_defaults(handler=_lookup)

    serve_cmd = subparsers.add_parser("serve", help="Run the HTTP API (and frontend build if present)")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8001)
    serve_cmd.add_argument("--log-level", default="info")
    serve_cmd.add_argument("--static-dir", help="Override static frontend directory relative to project root")
    serve_cmd.add_argument("--api-only", action="store_true", help="Serve JSON API without static frontend")
    serve_cmd.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve_cmd.set_defaults(handler=_serve)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")
    args = build_parser().parse_args(provided)
    try:
        code = args.handler(args)
    except FabricSpecError as exc:
        LOG.error("%s failed: %s", args.command, exc.message)
        raw = getattr(exc, "raw_text", None)
        if raw:
            LOG.error("Raw model output (first 300 chars): %s", raw[:300])
        code = 1
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
