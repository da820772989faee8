"""CLI entry-point to launch the SmartDump local HTTP API."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import uvicorn

from api import __version__ as API_VERSION
from api.server import APIServerConfig, create_app
from core.logging_utils import configure_json_logging
from core.paths import resolve_working_dir
from core.settings import load_settings
from triage.errors import ScanError
from triage.events import EventBus, RecordingSink
from triage.service import TriageService, TriageSettings

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8757
DEFAULT_CORS = ["http://localhost", "http://127.0.0.1"]
CREDENTIAL_ENV = "ANTHROPIC_API_KEY"


def _resolve_bind_host(candidate: Optional[str]) -> str:
    host = (candidate or DEFAULT_HOST).strip()
    if not host:
        host = DEFAULT_HOST
    norm = host.lower()
    if norm == "localhost":
        return "127.0.0.1"
    if norm.startswith("::ffff:"):
        norm = norm.split("::ffff:")[-1]
    if norm == "::1":
        return "127.0.0.1"
    if norm.startswith("127."):
        return host if host.startswith("127.") else "127.0.0.1"
    raise ValueError(
        f"Refusing to bind API server to non-loopback host '{candidate}'. SmartDump only serves on localhost."
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start the local SmartDump screenshot triage service.")
    parser.add_argument("--host", default=None, help="Bind host (default from settings.json)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default from settings.json)")
    parser.add_argument(
        "--cors",
        action="append",
        dest="cors",
        default=None,
        help="Additional allowed CORS origin (repeatable).",
    )
    parser.add_argument("--list", dest="list_folder", metavar="FOLDER", default=None, help="Print the screenshots of FOLDER as JSON and exit.")
    parser.add_argument(
        "--classify",
        dest="classify_folder",
        metavar="FOLDER",
        default=None,
        help="Classify every screenshot of FOLDER once, print the events as JSON lines and exit.",
    )
    parser.add_argument(
        "--api-key",
        dest="api_key",
        default=None,
        help=f"Provider credential for --classify (default: ${CREDENTIAL_ENV}).",
    )
    return parser.parse_args(argv)


def resolve_api_settings(args: argparse.Namespace) -> tuple[str, int, List[str], bool, Dict[str, Any]]:
    working_dir = resolve_working_dir()
    settings = load_settings(working_dir)
    api_settings = settings.get("api") if isinstance(settings.get("api"), dict) else {}

    host = _resolve_bind_host(args.host or api_settings.get("host") or DEFAULT_HOST)
    port = args.port or api_settings.get("port") or DEFAULT_PORT
    try:
        port = int(port)
    except (TypeError, ValueError):
        port = DEFAULT_PORT

    if args.cors:
        cors = list(args.cors)
    else:
        cors = list(api_settings.get("cors_origins") or DEFAULT_CORS)

    lan_only = bool(api_settings.get("lan_only", True))
    return str(host), int(port), cors, lan_only, settings


def _print_listing(service: TriageService, folder: str) -> int:
    try:
        entries = service.list_candidates(folder)
    except ScanError as exc:
        logging.error("%s", exc)
        return 1
    print(json.dumps([entry.to_json() for entry in entries], ensure_ascii=False, indent=2))
    return 0


def _classify_once(service: TriageService, sink: RecordingSink, folder: str, credential: Optional[str]) -> int:
    try:
        message = service.start_run(folder, credential or "", watch=False)
    except (ScanError, ValueError) as exc:
        logging.error("%s", exc)
        return 1
    logging.info("%s", message)
    service.wait_idle()
    for event in sink.events:
        print(json.dumps(event.to_json(), ensure_ascii=False))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    args = parse_args(argv)
    try:
        host, port, cors, lan_only, settings = resolve_api_settings(args)
    except ValueError as exc:
        logging.error("%s", exc)
        return 2
    configure_json_logging(working_dir=Path(settings["working_dir"]))
    triage_settings = TriageSettings.from_settings(settings)

    if args.list_folder or args.classify_folder:
        sink = RecordingSink()
        service = TriageService(triage_settings, sink)
        try:
            if args.list_folder:
                return _print_listing(service, args.list_folder)
            credential = args.api_key or os.environ.get(CREDENTIAL_ENV)
            return _classify_once(service, sink, args.classify_folder, credential)
        finally:
            service.shutdown()

    bus = EventBus()
    service = TriageService(triage_settings, bus)
    config = APIServerConfig(
        service=service,
        bus=bus,
        cors_origins=cors,
        app_version=API_VERSION,
        lan_only=lan_only,
    )
    app = create_app(config)

    print(f"API listening on http://{host}:{port}", flush=True)

    uvicorn_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=False,
    )
    server = uvicorn.Server(uvicorn_config)
    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
