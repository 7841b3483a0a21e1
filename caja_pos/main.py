"""Entry point for the caja-pos Textual app."""

from __future__ import annotations

import argparse
import os

from caja_pos.api import BackendClient
from caja_pos.config import BACKEND_URL, DB_PATH, DEBUG_LOG_PATH
from caja_pos.logs import configure_logging, get_logger
from caja_pos.models import Operator
from caja_pos.persistence import SessionStorage
from caja_pos.pos_app import PosApp


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="caja-pos", description="Terminal point-of-sale client.")
    parser.add_argument("--backend-url", default=BACKEND_URL, help="Backend API base URL")
    parser.add_argument("--local", default=os.environ.get("CAJA_POS_LOCAL_ID", ""), help="Active location id")
    parser.add_argument("--user", default=os.environ.get("CAJA_POS_USER", ""), help="Operator name")
    parser.add_argument("--role", default=os.environ.get("CAJA_POS_ROLE", "cajero"), help="Operator role")
    parser.add_argument("--db", default=DB_PATH, help="Session storage database path")
    parser.add_argument("--log-file", default=DEBUG_LOG_PATH, help="Debug log path")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Run the Textual application."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_file)

    storage = SessionStorage(args.db)
    storage.bootstrap_schema()

    backend = BackendClient(args.backend_url)
    operator = Operator(name=args.user, role=args.role, location_id=args.local)
    get_logger(__name__).info("startup", backend_url=args.backend_url, location_id=args.local, role=args.role)
    PosApp(backend, storage, operator).run()


if __name__ == "__main__":
    main()
