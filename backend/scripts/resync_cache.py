"""Push every cached user's pending writes to the remote store."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from goalify.cache import LocalCacheStore
from goalify.config import get_settings
from goalify.db.base import Base
from goalify.db.session import get_engine
from goalify.gateway import DatabaseGateway, RemoteGateway
from goalify.reconciler import Reconciler, ResyncReport

logger = logging.getLogger("goalify.resync")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Re-push pending local writes to the database.")
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Cache directory to drain (default: GOALIFY_CACHE_DIR).",
    )
    parser.add_argument(
        "--user",
        action="append",
        dest="users",
        default=None,
        help="Only resync this user id; may be repeated.",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables before pushing (useful for local SQLite databases).",
    )
    return parser.parse_args(argv)


def resync_all(reconciler: Reconciler, users: List[str]) -> List[ResyncReport]:
    reports: List[ResyncReport] = []
    for user_id in users:
        if not reconciler.pending(user_id):
            continue
        report = reconciler.resync(user_id)
        reports.append(report)
        if report.interrupted:
            logger.warning("Remote store became unavailable while resyncing %s; stopping", user_id)
            break
    return reports


def main(argv: Optional[list[str]] = None, gateway: Optional[RemoteGateway] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    args = parse_args(argv)
    cache = LocalCacheStore(args.cache_dir or get_settings().cache_dir)
    if args.create_schema:
        Base.metadata.create_all(get_engine())
    reconciler = Reconciler(cache, gateway or DatabaseGateway())
    reports = resync_all(reconciler, args.users or cache.users())
    print(json.dumps([report.model_dump() for report in reports]))
    if any(report.interrupted or report.remaining for report in reports):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
