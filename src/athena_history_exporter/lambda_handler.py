"""AWS Lambda entry point.

Configure the function with ``HISTORY_BASE_URI`` and optionally ``STATE_URI``
and schedule it (e.g. an EventBridge rule every 15 minutes). The event payload
is ignored; every invocation runs one incremental export.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from .bootstrap import build_history_saver
from .config import get_settings

logger = logging.getLogger(__name__)


def handler(event: Any, context: Any) -> Optional[str]:
    """Run one export and return the newest processed query execution ID."""
    settings = get_settings()
    # The Lambda runtime installs its own root handler; only the level is ours.
    logging.getLogger().setLevel(settings.LOG_LEVEL)
    first_id = build_history_saver(settings).save_history()
    if first_id is None:
        logger.info("No new query executions")
    return first_id
