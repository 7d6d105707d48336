"""Construction of AWS clients and the `HistorySaver` from settings."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import boto3

from .checkpoint import CheckpointStore
from .config import Settings
from .history import HistorySaver
from .history_log import HistoryLogWriter
from .source import QueryExecutionSource

logger = logging.getLogger(__name__)

__all__ = ["build_history_saver"]


def build_history_saver(
    settings: Settings,
    *,
    athena_client: Optional[Any] = None,
    s3_client: Optional[Any] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> HistorySaver:
    """Wire a `HistorySaver` for ``settings``.

    Clients are created with boto3 for ``settings.AWS_REGION`` unless given.
    The region tagged onto exported records is the Athena client's region.
    """
    if athena_client is None:
        athena_client = boto3.client("athena", region_name=settings.AWS_REGION)
    if s3_client is None:
        s3_client = boto3.client("s3", region_name=settings.AWS_REGION)
    source = QueryExecutionSource(
        athena_client,
        work_group=settings.WORK_GROUP,
        page_size=settings.LIST_PAGE_SIZE,
        sleep=sleep,
    )
    log_writer = HistoryLogWriter(s3_client, settings.HISTORY_BASE_URI, source.region)
    checkpoint_store = CheckpointStore(s3_client, settings.STATE_URI)
    logger.info(
        "Exporter init: region=%s history=%s state=%s work_group=%s batch_size=%d",
        source.region,
        settings.HISTORY_BASE_URI,
        settings.STATE_URI,
        settings.WORK_GROUP,
        settings.BATCH_SIZE,
    )
    return HistorySaver(source, log_writer, checkpoint_store, batch_size=settings.BATCH_SIZE)
