"""History log serialization and upload.

This module is the "L" (Load) part of the exporter. One flush of query
executions becomes one gzip-compressed JSON-lines object on S3:

    <prefix>/<region>/<YYYY>/<MM>/<DD>/<HH>/<first QueryExecutionId>.json.gz

The hour partition comes from the submission time (UTC) of the first record in
the flush. Each line is the boto3 query execution document with a ``region``
field added and the two status timestamps rendered as
``YYYY-MM-DD HH:MM:SS.mmm`` in UTC, a format Athena's JSON SerDe reads as a
``timestamp`` column.
"""
from __future__ import annotations

import gzip
import io
import json
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from .models.athena import QueryExecution
from .storage import format_s3_uri, split_s3_uri

logger = logging.getLogger(__name__)

__all__ = [
    "HistoryLogWriter",
    "create_log_key",
    "format_log_timestamp",
    "serialize_query_executions",
]


def format_log_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render ``value`` as ``YYYY-MM-DD HH:MM:SS.mmm`` in UTC (None stays None)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S.") + f"{value.microsecond // 1000:03d}"


def _log_document(query_execution: QueryExecution, region: str) -> dict[str, Any]:
    document = query_execution.model_dump(mode="json", by_alias=True)
    document["region"] = region
    status = query_execution.status
    document["Status"]["SubmissionDateTime"] = format_log_timestamp(status.submission_date_time)
    document["Status"]["CompletionDateTime"] = format_log_timestamp(status.completion_date_time)
    return document


def serialize_query_executions(query_executions: Sequence[QueryExecution], region: str) -> bytes:
    """Gzip the query executions as newline-delimited JSON, in input order."""
    buffer = io.BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode="wb") as zio:
        for query_execution in query_executions:
            line = json.dumps(_log_document(query_execution, region), ensure_ascii=False)
            zio.write(line.encode("utf-8"))
            zio.write(b"\n")
    return buffer.getvalue()


def create_log_key(prefix: str, region: str, first_query_execution: QueryExecution) -> str:
    """Build the partitioned object key for a flush starting with ``first_query_execution``."""
    key = prefix
    if key and not key.endswith("/"):
        key += "/"
    submitted = first_query_execution.status.submission_date_time.astimezone(timezone.utc)
    return (
        f"{key}{region}/{submitted.strftime('%Y/%m/%d/%H')}/"
        f"{first_query_execution.query_execution_id}.json.gz"
    )


class HistoryLogWriter:
    """Writes batches of query executions below ``history_base_uri``.

    Args:
        s3_client: boto3 S3 client.
        history_base_uri: ``s3://bucket/prefix`` of the history log.
        region: Region tagged onto every record and used in the key.
    """

    def __init__(self, s3_client: Any, history_base_uri: str, region: str):
        self._s3_client = s3_client
        self._bucket, self._prefix = split_s3_uri(history_base_uri)
        self._region = region

    @property
    def region(self) -> str:
        return self._region

    def write(self, query_executions: List[QueryExecution]) -> str:
        """Upload one history object for ``query_executions`` and return its key.

        A failed upload raises; nothing is retried or cleaned up here.
        """
        if not query_executions:
            raise ValueError("Refusing to write an empty history log object")
        body = serialize_query_executions(query_executions, self._region)
        key = create_log_key(self._prefix, self._region, query_executions[0])
        logger.debug(
            "Saving execution metadata for %d queries to %s",
            len(query_executions),
            format_s3_uri(self._bucket, key),
        )
        self._s3_client.put_object(Bucket=self._bucket, Key=key, Body=body)
        logger.info("Saved execution metadata for %d queries", len(query_executions))
        return key
