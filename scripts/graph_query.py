#!/usr/bin/env python
"""CLI for running connection-graph traversals against the configured database."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from datetime import date, datetime
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from handshake_graph.config import GRAPH_SLICE_DEPTH, get_store_settings
from handshake_graph.data.connection_store import create_store_engine, get_connection_store
from handshake_graph.errors import HandshakeGraphError
from handshake_graph.graph import PathNotFound, TraversalEngine
from handshake_graph.logging_utils import setup_logging
from handshake_graph.views import graph_slice_view, handshake_path_view, notification_recipients

logger = logging.getLogger(__name__)


def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Query the connection graph")
    parser.add_argument("--db-url", help="SQLAlchemy URL; defaults to HANDSHAKE_DB_URL.")
    parser.add_argument("--verbose", action="store_true", help="Show operation start/finish lines on the console.")
    sub = parser.add_subparsers(dest="command", required=True)

    reach = sub.add_parser("reachability", help="Users within N handshakes.")
    reach.add_argument("root")
    reach.add_argument("--max-depth", type=int)
    reach.add_argument("--max-total", type=int)
    reach.add_argument("--exclude", nargs="*", default=[], help="User ids removed from the graph.")

    path = sub.add_parser("path", help="Shortest handshake chain between two users.")
    path.add_argument("source")
    path.add_argument("target")
    path.add_argument("--max-depth", type=int)
    path.add_argument("--with-users", action="store_true", help="Include names and connection counts.")

    slice_cmd = sub.add_parser("slice", help="Induced subgraph for visualization.")
    slice_cmd.add_argument("root")
    slice_cmd.add_argument("--depth", type=int, default=GRAPH_SLICE_DEPTH)

    stats = sub.add_parser("stats", help="People reachable per handshake depth.")
    stats.add_argument("root")

    growth = sub.add_parser("growth", help="Cumulative connections per UTC day.")
    growth.add_argument("root")
    growth.add_argument("--days", type=int, default=30)

    network = sub.add_parser("network", help="Size of the whole connected component.")
    network.add_argument("root")

    recipients = sub.add_parser("recipients", help="Notification recipients for a creator.")
    recipients.add_argument("creator")
    recipients.add_argument("--max", dest="max_recipients", type=int)
    recipients.add_argument("--exclude", nargs="*", default=[])

    return parser.parse_args(argv)


def run_command(args: argparse.Namespace, engine: TraversalEngine, store) -> Any:
    if args.command == "reachability":
        result = engine.reachability(args.root, args.max_depth, args.max_total, args.exclude)
        return {
            "root": result.root,
            "truncated": result.truncated,
            "users": [asdict(user) for user in result.users],
        }
    if args.command == "path":
        if args.with_users:
            return {"path": handshake_path_view(engine, store, args.source, args.target, args.max_depth)}
        outcome = engine.shortest_path(args.source, args.target, args.max_depth)
        if isinstance(outcome, PathNotFound):
            return {"found": False, "max_depth": outcome.max_depth}
        return {"found": True, "length": outcome.length, "hops": list(outcome.hops)}
    if args.command == "slice":
        return graph_slice_view(engine, store, args.root, args.depth)
    if args.command == "stats":
        stats = engine.stats_by_depth(args.root)
        return {"root": stats.root, "total": stats.total, "truncated": stats.truncated, "by_depth": stats.counts}
    if args.command == "growth":
        return [asdict(point) for point in engine.growth_series(args.root, args.days)]
    if args.command == "network":
        result = engine.network(args.root)
        return {"root": result.root, "size": len(result.users), "truncated": result.truncated}
    if args.command == "recipients":
        return notification_recipients(engine, args.creator, args.max_recipients, args.exclude)
    raise ValueError(f"Unknown command {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(console_level=logging.INFO if args.verbose else logging.WARNING)

    settings = get_store_settings()
    if args.db_url:
        settings = replace(settings, url=args.db_url)
    try:
        store = get_connection_store(create_store_engine(settings))
        with TraversalEngine(store) as engine:
            payload = run_command(args, engine, store)
    except HandshakeGraphError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1
    except SQLAlchemyError as exc:
        logger.error("Connection store error at %s: %s", settings.url, exc)
        return 1

    print(json.dumps(payload, indent=2, default=_json_default))
    return 0


if __name__ == "__main__":
    sys.exit(main())
