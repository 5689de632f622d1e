"""Command that starts the game server and the web frontend."""

import argparse
import os
import sys
import threading

import pymysql

from .app import DEFAULT_HOST as WEB_HOST
from .app import DEFAULT_PORT as WEB_PORT
from .app import run_frontend
from .bancho import DEFAULT_HOST as BANCHO_HOST
from .bancho import DEFAULT_PORT as BANCHO_PORT
from .bancho import BanchoServer
from .db import DEFAULT_DATABASE, DEFAULT_HOST, DEFAULT_USER, PASSWORD, connect
from .logs import log_err


def _build_parser():
    parser = argparse.ArgumentParser(
        prog="retsu",
        description="Run the game server and its web frontend.",
    )
    parser.add_argument("--db-host", default=DEFAULT_HOST)
    parser.add_argument("--db-user", default=DEFAULT_USER)
    parser.add_argument("--db-name", default=DEFAULT_DATABASE)
    parser.add_argument("--bancho-host", default=BANCHO_HOST)
    parser.add_argument("--bancho-port", type=int, default=BANCHO_PORT)
    parser.add_argument("--web-host", default=WEB_HOST)
    parser.add_argument("--web-port", type=int, default=WEB_PORT)
    parser.add_argument("--root", default=None, help="directory holding frontend/")
    return parser


def main(argv=None):
    """Start both servers; the database password comes from RETSU_DB_PASSWORD."""
    args = _build_parser().parse_args(argv)
    password = os.environ.get("RETSU_DB_PASSWORD", PASSWORD)
    try:
        database = connect(
            host=args.db_host,
            user=args.db_user,
            password=password,
            database=args.db_name,
        )
    except (pymysql.err.MySQLError, OSError) as exc:
        log_err("Failed to create database connection! %s", exc)
        return 1
    server = BanchoServer(database)
    threading.Thread(
        target=server.serve, args=(args.bancho_host, args.bancho_port), daemon=True
    ).start()
    run_frontend(database, args.web_host, args.web_port, args.root)
    return 0


if __name__ == "__main__":
    sys.exit(main())