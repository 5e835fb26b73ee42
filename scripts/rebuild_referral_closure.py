#!/usr/bin/env python3
"""
Rebuild or verify the referral closure table.

This script:
1. Loads every user's referrer pointer
2. Computes the full closure relation in memory (cycles, dangling
   referrers and over-deep chains abort before anything is written)
3. Either reports drift against the stored relation (--verify-only)
   or replaces the stored relation in one transaction

Usage:
    python scripts/rebuild_referral_closure.py --verify-only  # Report drift
    python scripts/rebuild_referral_closure.py                # Rebuild

NOTE: Stop registration workers or expect them to wait on the table lock
while the swap commits.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from affiliate.config.settings import settings
from affiliate.services.referral.closure_rebuild import ClosureRebuildJob
from affiliate.utils.exceptions import DataIntegrityError
from affiliate.utils.logging_config import setup_logging


# Edges printed per drift category
SAMPLE_SIZE = 10


async def rebuild_referral_closure(verify_only: bool = False) -> int:
    """
    Run the rebuild or the integrity check.

    Args:
        verify_only: Only compare, never write

    Returns:
        Process exit code
    """
    engine = create_async_engine(
        settings.async_database_url,
        echo=False,
        poolclass=NullPool,
    )
    session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    logger.info("=" * 60)
    logger.info("REFERRAL CLOSURE REBUILD")
    logger.info(f"Mode: {'VERIFY ONLY' if verify_only else 'REBUILD'}")
    logger.info(f"Max depth: {settings.referral_closure_max_depth}")
    logger.info("=" * 60)

    try:
        async with session_maker() as session:
            job = ClosureRebuildJob(session)

            if verify_only:
                report = await job.verify()
                if report.is_clean:
                    logger.success("Closure table matches referrer pointers")
                    return 0

                for name in ("missing", "unexpected", "depth_mismatch"):
                    items = getattr(report, name)
                    logger.warning(f"{name}: {len(items)}")
                    for item in items[:SAMPLE_SIZE]:
                        logger.warning(f"  {item}")
                logger.warning(
                    f"missing_self_edges: {len(report.missing_self_edges)} "
                    f"{report.missing_self_edges[:SAMPLE_SIZE]}"
                )
                logger.info("Run without --verify-only to repair")
                return 1

            report = await job.run()
            logger.success(
                f"Rebuilt closure: {report.nodes} users, {report.edges} edges "
                f"in {report.duration}s"
            )
            return 0

    except DataIntegrityError as e:
        logger.error(f"Referral tree is not a valid forest: {e}")
        return 2

    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Rebuild or verify the referral closure table"
    )
    parser.add_argument(
        "--verify-only",
        action="store_true",
        help="Report drift without writing",
    )

    args = parser.parse_args()
    setup_logging("closure-rebuild")
    sys.exit(asyncio.run(rebuild_referral_closure(verify_only=args.verify_only)))


if __name__ == "__main__":
    main()
