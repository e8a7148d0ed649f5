"""
Data retention — raw events are kept for a bounded time for privacy.

Weekly scores survive the purge; they are the historical record once the
underlying events are gone.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.services import ledger
from app.services.clock import as_utc, utc_now

logger = logging.getLogger(__name__)


def purge_expired_events(
    db: Session,
    now: Optional[datetime] = None,
    retention_days: Optional[int] = None,
) -> int:
    days = settings.EVENT_RETENTION_DAYS if retention_days is None else retention_days
    cutoff = as_utc(now or utc_now()) - timedelta(days=days)
    deleted = ledger.purge_events_before(db, cutoff)
    if deleted:
        logger.info("Deleted %d events older than %d days", deleted, days)
    else:
        logger.info("No events older than %d days to clean up", days)
    return deleted
