from __future__ import annotations

import argparse
import base64
import json
import mimetypes
import os
import sys
from dataclasses import replace
from typing import Sequence

from ..config import load_settings
from ..domain.models import Identity
from ..errors import BreadCountError
from ..logging import get_logger, set_level
from ..paths import expand_abs
from ..records import IngestionPipeline

LOG = get_logger("cli-main")


def _image_to_data_url(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    if not mime or not mime.startswith("image/"):
        mime = "image/jpeg"
    with open(path, "rb") as f:
        data = f.read()
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def _build_pipeline(ns: argparse.Namespace) -> IngestionPipeline:
    root_dir = os.getcwd()
    settings = load_settings(root_dir)
    if ns.db:
        settings = replace(settings, db_path=expand_abs(ns.db))
    return IngestionPipeline.from_settings(settings, root_dir=root_dir)


def _handle_init(ns: argparse.Namespace) -> int:
    pipeline = _build_pipeline(ns)
    LOG.info(f"Record DB ready at: {pipeline.store.db_path}")
    print(pipeline.store.db_path)
    return 0


def _handle_submit(ns: argparse.Namespace) -> int:
    image_path = expand_abs(ns.image)
    if not os.path.isfile(image_path):
        LOG.error(f"Image not found: {image_path}")
        return 2
    pipeline = _build_pipeline(ns)
    identity = Identity(employee_id=ns.employee_id, employee_name=ns.employee_name or "")
    try:
        result = pipeline.create_record(
            identity,
            provider_name=ns.provider,
            cash_amount=ns.cash,
            image_payload=_image_to_data_url(image_path),
        )
    except BreadCountError as exc:
        LOG.error(f"Submission failed: {exc}")
        return 1
    finally:
        pipeline.estimator.close()
    print(json.dumps(result, ensure_ascii=False))
    return 0


def _handle_records(ns: argparse.Namespace) -> int:
    if not ns.all and not ns.employee_id:
        LOG.error("Provide --employee-id or --all")
        return 2
    pipeline = _build_pipeline(ns)
    identity = Identity(employee_id=ns.employee_id or "", employee_name="", is_admin=ns.all)
    records = pipeline.get_records(identity, include_images=False)
    print(json.dumps([r.as_dict(include_image=False) for r in records], ensure_ascii=False, indent=2))
    return 0


def _handle_stats(ns: argparse.Namespace) -> int:
    pipeline = _build_pipeline(ns)
    print(json.dumps(pipeline.get_statistics(), ensure_ascii=False, indent=2))
    return 0


def _handle_serve(ns: argparse.Namespace) -> int:
    import uvicorn

    from ..records.api import create_app

    allow_origins = ns.allow_origins
    if allow_origins and "*" in allow_origins:
        allow_origins = ["*"]

    app = create_app(pipeline=_build_pipeline(ns), allow_origins=allow_origins)
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="breadcount",
        description="Record bread counts from photos and report daily/employee totals.",
    )
    parser.add_argument("--db", help="Path to the SQLite record DB (default: var/breadcount/records.sqlite3)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init", help="Create/ensure the record DB schema exists")
    init.set_defaults(handler=_handle_init)

    submit = subparsers.add_parser("submit", help="Count the bread in an image and store a record")
    submit.add_argument("--image", required=True, help="Path to a JPG/PNG photo")
    submit.add_argument("--employee-id", required=True)
    submit.add_argument("--employee-name", default="")
    submit.add_argument("--provider", default="", help="Name of the person who supplied the bread")
    submit.add_argument("--cash", default="0", help="Cash amount received (non-numeric values count as 0)")
    submit.set_defaults(handler=_handle_submit)

    records = subparsers.add_parser("records", help="List stored records, newest first")
    records.add_argument("--employee-id")
    records.add_argument("--all", action="store_true", help="List every employee's records")
    records.set_defaults(handler=_handle_records)

    stats = subparsers.add_parser("stats", help="Print daily and per-employee totals")
    stats.set_defaults(handler=_handle_stats)

    serve = subparsers.add_parser("serve", help="Run the JSON API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=3000)
    serve.add_argument("--log-level", default="info")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve.set_defaults(handler=_handle_serve)

    args = parser.parse_args(provided)
    if args.verbose:
        set_level("DEBUG")
    code = args.handler(args)
    LOG.debug(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
