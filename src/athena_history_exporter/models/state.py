"""Exporter state document persisted between runs."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Checkpoint(BaseModel):
    """Newest query execution ID already exported.

    The stored document may carry other keys (written by newer versions or by
    operators); they are kept as extras and written back unchanged.
    """

    model_config = ConfigDict(extra="allow")

    last_query_execution_id: Optional[str] = None

    def advanced_to(self, query_execution_id: str) -> "Checkpoint":
        """Return a copy with ``last_query_execution_id`` replaced, extras intact."""
        return self.model_copy(update={"last_query_execution_id": query_execution_id})
