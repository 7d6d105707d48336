"""Checkpoint management for incremental history exports.

The checkpoint records the newest query execution ID already written to the
history log, so the next run stops listing as soon as it reaches that ID.

The state document lives at ``STATE_URI``:

* ``s3://bucket/key`` - stored as a JSON object on S3.
* a plain filesystem path - stored as a JSON file, written atomically (temp
  file then rename) so an interrupted run cannot corrupt it.

Any other ``scheme://`` location is rejected with `ConfigurationError`.

A missing document is not an error: the first run starts from an empty
checkpoint and exports everything Athena still lists. When no ``STATE_URI`` is
configured checkpointing is disabled and both operations are no-ops.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

from botocore.exceptions import ClientError

from .models.state import Checkpoint
from .storage import is_not_found, resolve_state_location

logger = logging.getLogger(__name__)


def load_checkpoint_file(path: str) -> Optional[dict[str, Any]]:
    """Read a JSON state document from ``path``; None when the file does not exist."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None


def store_checkpoint_file(path: str, document: dict[str, Any]) -> None:
    """Atomically write a JSON state document to ``path``."""
    tmp_path = f"{path}.tmp"
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(document, f)
    os.replace(tmp_path, path)


class CheckpointStore:
    """Reads and writes the exporter's state document.

    Args:
        s3_client: boto3 S3 client, used for ``s3://`` locations.
        state_uri: Location of the state document, or None to disable
            checkpointing.
    """

    def __init__(self, s3_client: Any, state_uri: Optional[str]):
        self._s3_client = s3_client
        self._state_uri = state_uri or None
        self._bucket: Optional[str] = None
        self._key: Optional[str] = None
        if self._state_uri:
            location = resolve_state_location(self._state_uri)
            if location is not None:
                self._bucket, self._key = location

    @property
    def enabled(self) -> bool:
        return self._state_uri is not None

    @property
    def state_uri(self) -> Optional[str]:
        return self._state_uri

    def load(self) -> Checkpoint:
        """Load the checkpoint; an empty one when disabled or not found."""
        if not self._state_uri:
            return Checkpoint()
        logger.debug("Loading state from %s", self._state_uri)
        document = self._read()
        if document is None:
            logger.warning("No state found at %s", self._state_uri)
            return Checkpoint()
        checkpoint = Checkpoint.model_validate(document)
        logger.info(
            'Loaded last query execution ID: "%s"', checkpoint.last_query_execution_id
        )
        return checkpoint

    def save(self, checkpoint: Checkpoint) -> None:
        """Overwrite the stored document with ``checkpoint`` (no-op when disabled)."""
        if not self._state_uri:
            return
        logger.debug("Saving state to %s", self._state_uri)
        self._write(checkpoint.model_dump())

    def _read(self) -> Optional[dict[str, Any]]:
        if self._bucket is None:
            return load_checkpoint_file(self._state_uri)
        try:
            response = self._s3_client.get_object(Bucket=self._bucket, Key=self._key)
        except ClientError as e:
            if is_not_found(e):
                return None
            raise
        return json.loads(response["Body"].read())

    def _write(self, document: dict[str, Any]) -> None:
        if self._bucket is None:
            store_checkpoint_file(self._state_uri, document)
            return
        self._s3_client.put_object(
            Bucket=self._bucket,
            Key=self._key,
            Body=json.dumps(document).encode("utf-8"),
        )


__all__ = ["CheckpointStore", "load_checkpoint_file", "store_checkpoint_file"]
