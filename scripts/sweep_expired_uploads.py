#!/usr/bin/env python3
"""
Expire overdue upload sessions and grants.

Aborts the backend multipart upload of every active session past its TTL,
marks those sessions expired, and expires pending grants past theirs.
Meant to run from cron, e.g. every 15 minutes.

Usage:
  python scripts/sweep_expired_uploads.py [--batch-size 100]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config.settings import get_settings
from src.infrastructure.db.session import create_engine, create_session_factory
from src.infrastructure.scheduler.upload_cleanup import sweep_expired_uploads
from src.infrastructure.storage.s3 import build_storage_service


async def run(batch_size: int) -> int:
    settings = get_settings()
    storage = build_storage_service(settings)
    if storage is None:
        print("S3_BUCKET is not configured")
        return 2
    engine = create_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    try:
        result = await sweep_expired_uploads(session_factory, storage, batch_size=batch_size)
    finally:
        await engine.dispose()

    print(
        f"Expired {result.sessions_expired} sessions "
        f"({result.sessions_skipped} skipped) and {result.grants_expired} grants"
    )
    return 1 if result.sessions_skipped else 0


def main():
    parser = argparse.ArgumentParser(description="Expire overdue uploads")
    parser.add_argument("--batch-size", type=int, default=100, help="Sessions per run")
    args = parser.parse_args()

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    sys.exit(asyncio.run(run(args.batch_size)))


if __name__ == "__main__":
    main()
