"""Pydantic models for Athena query execution metadata.

These models wrap the dictionaries returned by boto3's
``batch_get_query_execution``. Only the fields the exporter reads are declared;
everything else Athena returns (``Query``, ``Statistics``, ``WorkGroup``,
``ResultConfiguration``, ``Status.State`` ...) is kept as model extras so it
is written to the history log verbatim.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # botocore returns tz-aware values; naive ones are taken to be UTC already.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class QueryExecutionStatus(BaseModel):
    """The ``Status`` block of a query execution."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    submission_date_time: datetime = Field(alias="SubmissionDateTime")
    # Absent while a query is still queued or running.
    completion_date_time: Optional[datetime] = Field(default=None, alias="CompletionDateTime")

    @field_validator("submission_date_time", "completion_date_time")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class QueryExecution(BaseModel):
    """Metadata for one Athena query execution."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    query_execution_id: str = Field(alias="QueryExecutionId")
    status: QueryExecutionStatus = Field(alias="Status")
