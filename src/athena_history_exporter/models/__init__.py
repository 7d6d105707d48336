"""Pydantic models for Athena query execution metadata and exporter state."""

from .athena import QueryExecution, QueryExecutionStatus
from .state import Checkpoint

__all__ = ["Checkpoint", "QueryExecution", "QueryExecutionStatus"]
