"""Run one subscription renewal pass; meant to be invoked by cron."""

from __future__ import annotations

import asyncio
import logging

from app.core.config import Settings, get_settings
from app.core.dependencies import Dependencies, build_dependencies
from app.core.logging import configure_logging
from app.services.errors import StorageError

logger = logging.getLogger(__name__)


async def renew_subscriptions(deps: Dependencies) -> int:
    """Return a process exit code: 0 when every candidate renewed."""

    try:
        summary = await deps.renewal_engine().run()
    except StorageError as exc:
        logger.error("Renewal run aborted: %s", exc.message)
        return 1

    for result in summary.results:
        if not result.success:
            logger.warning("Renewal failed for %s: %s", result.channel_id, result.message)
    logger.info(
        "Checked %d subscriptions: %d candidates, %d renewed, %d failed",
        summary.total_checked,
        summary.renewals_candidates,
        summary.renewals_succeeded,
        summary.renewals_failed,
    )
    return 0 if summary.renewals_failed == 0 else 1


async def main(settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    deps = build_dependencies(settings)
    try:
        return await renew_subscriptions(deps)
    finally:
        await deps.aclose()


if __name__ == "__main__":
    import sys

    sys.exit(asyncio.run(main()))
