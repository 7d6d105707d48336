"""Incremental export of Athena query history.

`HistorySaver.save_history` walks Athena's newest-first listing of query
execution IDs until it reaches the ID recorded by the previous run, and writes
the metadata of everything newer to the history log.

Batching happens at two granularities:

* IDs are looked up in groups of 50, the ``BatchGetQueryExecution`` ceiling.
* Looked-up records accumulate into a super-batch that is flushed as one
  history object once it holds at least ``batch_size`` records, and once more
  for whatever is left when listing stops.

After the first flush of a run the checkpoint is advanced to the newest ID
seen in that run. The save is guarded by a one-shot latch: a run writes the
checkpoint at most once, so a later flush cannot overwrite it with a different
value.

Per-run mutable state lives in `RunState`; a fresh one is created by every
call, so the latch never leaks between runs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .checkpoint import CheckpointStore
from .history_log import HistoryLogWriter
from .models.athena import QueryExecution
from .models.state import Checkpoint
from .source import MAX_GET_QUERY_EXECUTION_BATCH_SIZE, QueryExecutionSource

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10_000

__all__ = ["DEFAULT_BATCH_SIZE", "HistorySaver", "RunState"]


@dataclass
class RunState:
    """Mutable state of one `HistorySaver.save_history` call."""

    checkpoint: Checkpoint
    first_query_execution_id: Optional[str] = None
    found_checkpoint: bool = False
    state_saved: bool = False
    pending_ids: List[str] = field(default_factory=list)
    query_executions: List[QueryExecution] = field(default_factory=list)
    flushes: int = 0
    records_written: int = 0

    @property
    def last_query_execution_id(self) -> Optional[str]:
        return self.checkpoint.last_query_execution_id


class HistorySaver:
    """Exports query execution metadata newer than the stored checkpoint.

    Args:
        source: Lists IDs and fetches metadata from Athena.
        log_writer: Writes flushed super-batches to S3.
        checkpoint_store: Loads and saves the state document.
        batch_size: Minimum number of records per history object (except the
            final flush of a run).
    """

    def __init__(
        self,
        source: QueryExecutionSource,
        log_writer: HistoryLogWriter,
        checkpoint_store: CheckpointStore,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._source = source
        self._log_writer = log_writer
        self._checkpoint_store = checkpoint_store
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def save_history(self) -> Optional[str]:
        """Run one incremental export.

        Returns:
            The newest query execution ID processed in this run, or None when
            nothing newer than the checkpoint was listed.
        """
        run = RunState(checkpoint=self._checkpoint_store.load())
        self._scan(run)
        self._drain(run)
        if run.last_query_execution_id is not None and not run.found_checkpoint:
            logger.warning(
                'Last processed query execution ID "%s" is no longer listed; '
                "executions between it and the oldest listed one may be missing",
                run.last_query_execution_id,
            )
        logger.info(
            "Done: flushes=%d records=%d first_query_execution_id=%s found_checkpoint=%s",
            run.flushes,
            run.records_written,
            run.first_query_execution_id,
            run.found_checkpoint,
        )
        return run.first_query_execution_id

    def _scan(self, run: RunState) -> None:
        for query_execution_id in self._source.iter_query_execution_ids():
            if query_execution_id == run.last_query_execution_id:
                logger.info("Found the last previously processed query execution ID")
                run.found_checkpoint = True
                return
            if run.first_query_execution_id is None:
                run.first_query_execution_id = query_execution_id
            run.pending_ids.append(query_execution_id)
            if len(run.pending_ids) == MAX_GET_QUERY_EXECUTION_BATCH_SIZE:
                self._lookup_pending(run)
                if len(run.query_executions) >= self._batch_size:
                    self._flush(run)

    def _drain(self, run: RunState) -> None:
        if run.pending_ids:
            self._lookup_pending(run)
        if run.query_executions:
            self._flush(run)

    def _lookup_pending(self, run: RunState) -> None:
        run.query_executions.extend(self._source.get_query_executions(run.pending_ids))
        run.pending_ids = []

    def _flush(self, run: RunState) -> None:
        self._log_writer.write(run.query_executions)
        run.flushes += 1
        run.records_written += len(run.query_executions)
        self._save_state(run)
        run.query_executions = []

    def _save_state(self, run: RunState) -> None:
        if run.state_saved or not self._checkpoint_store.enabled:
            return
        first_id = run.first_query_execution_id
        if first_id is None:
            raise RuntimeError("Cannot save state before any query execution ID was listed")
        self._checkpoint_store.save(run.checkpoint.advanced_to(first_id))
        logger.info('Saved first processed query execution ID: "%s"', first_id)
        run.state_saved = True
