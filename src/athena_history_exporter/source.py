"""Athena access layer: listing query execution IDs and fetching their metadata.

This module is the "E" (Extract) part of the exporter. `QueryExecutionSource`
wraps a boto3 Athena client and offers two operations:

* `QueryExecutionSource.iter_query_execution_ids` - a lazy iterator over every
  query execution ID Athena lists, newest first, paging through
  ``ListQueryExecutions`` as it is consumed.
* `QueryExecutionSource.get_query_executions` - full metadata for up to 50 IDs
  via ``BatchGetQueryExecution``.

Both calls retry throttling rejections through
`athena_history_exporter.retry.retry_throttling`; any other error propagates.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional

from .models.athena import QueryExecution
from .retry import retry_throttling

logger = logging.getLogger(__name__)

# Service limit of BatchGetQueryExecution.
MAX_GET_QUERY_EXECUTION_BATCH_SIZE = 50
# Service limit of ListQueryExecutions MaxResults.
MAX_LIST_PAGE_SIZE = 50


class QueryExecutionIdPager:
    """Pull-based iterator over ``ListQueryExecutions`` results.

    Holds the page token and the unconsumed IDs of the current page explicitly,
    so at most one page is buffered and the retry of a throttled page request
    stays inside `_fetch_page`. Athena lists executions most recently submitted
    first; that order is preserved.
    """

    def __init__(self, source: "QueryExecutionSource"):
        self._source = source
        self._buffer: List[str] = []
        self._position = 0
        self._next_token: Optional[str] = None
        self._pages_fetched = 0
        self._exhausted = False

    def __iter__(self) -> "QueryExecutionIdPager":
        return self

    def __next__(self) -> str:
        while self._position >= len(self._buffer):
            if self._exhausted:
                raise StopIteration
            self._fetch_page()
        query_execution_id = self._buffer[self._position]
        self._position += 1
        return query_execution_id

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched

    def _fetch_page(self) -> None:
        response = self._source.list_page(self._next_token)
        self._pages_fetched += 1
        self._buffer = list(response.get("QueryExecutionIds", []))
        self._position = 0
        self._next_token = response.get("NextToken")
        if not self._next_token:
            self._exhausted = True


class QueryExecutionSource:
    """Athena-backed source of query execution IDs and metadata.

    Args:
        athena_client: boto3 Athena client.
        work_group: Only list executions of this work group (Athena default
            work group when None).
        page_size: ``MaxResults`` for each list request (1..50); Athena's
            default when None.
        sleep: Blocking sleep used between throttling retries.
    """

    def __init__(
        self,
        athena_client: Any,
        *,
        work_group: Optional[str] = None,
        page_size: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if page_size is not None and not 1 <= page_size <= MAX_LIST_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_LIST_PAGE_SIZE}")
        self._client = athena_client
        self._work_group = work_group
        self._page_size = page_size
        self._sleep = sleep

    @property
    def region(self) -> str:
        """Region of the Athena client; tagged onto every exported record."""
        return self._client.meta.region_name

    def list_page(self, next_token: Optional[str] = None) -> Dict[str, Any]:
        """Request one page of query execution IDs, retrying throttling."""
        params: Dict[str, Any] = {}
        if next_token:
            params["NextToken"] = next_token
        if self._work_group:
            params["WorkGroup"] = self._work_group
        if self._page_size:
            params["MaxResults"] = self._page_size
        return retry_throttling(
            lambda: self._client.list_query_executions(**params), sleep=self._sleep
        )

    def iter_query_execution_ids(self) -> Iterator[str]:
        """Return a fresh iterator over all listed IDs, newest first."""
        return QueryExecutionIdPager(self)

    def get_query_executions(self, query_execution_ids: List[str]) -> List[QueryExecution]:
        """Fetch metadata for at most 50 query executions.

        Results follow Athena's response order, which in practice matches the
        request order. IDs Athena could not process are logged and skipped.

        Raises:
            ValueError: More than `MAX_GET_QUERY_EXECUTION_BATCH_SIZE` IDs.
        """
        if len(query_execution_ids) > MAX_GET_QUERY_EXECUTION_BATCH_SIZE:
            raise ValueError(
                f"At most {MAX_GET_QUERY_EXECUTION_BATCH_SIZE} query execution IDs per "
                f"lookup, got {len(query_execution_ids)}"
            )
        logger.debug(
            "Loading query execution metadata for %d query executions",
            len(query_execution_ids),
        )
        ids = list(query_execution_ids)
        response = retry_throttling(
            lambda: self._client.batch_get_query_execution(QueryExecutionIds=ids),
            sleep=self._sleep,
        )
        for unprocessed in response.get("UnprocessedQueryExecutionIds") or []:
            logger.warning(
                "Athena could not return query execution %s: %s %s",
                unprocessed.get("QueryExecutionId"),
                unprocessed.get("ErrorCode"),
                unprocessed.get("ErrorMessage"),
            )
        query_executions = [
            QueryExecution.model_validate(raw) for raw in response.get("QueryExecutions", [])
        ]
        if query_executions:
            last = query_executions[-1].status.submission_date_time
            logger.debug(last.strftime("Last submission time of the batch was %Y-%m-%d %H:%M:%S UTC"))
        return query_executions


__all__ = [
    "MAX_GET_QUERY_EXECUTION_BATCH_SIZE",
    "MAX_LIST_PAGE_SIZE",
    "QueryExecutionIdPager",
    "QueryExecutionSource",
]
