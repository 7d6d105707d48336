from __future__ import annotations

import json
import logging

import pytest

from athena_history_exporter.checkpoint import (
    CheckpointStore,
    load_checkpoint_file,
    store_checkpoint_file,
)
from athena_history_exporter.errors import ConfigurationError
from athena_history_exporter.models.state import Checkpoint
from conftest import FakeS3Client, client_error

STATE_URI = "s3://state/uri.json"


def test_disabled_store_is_a_no_op(s3_client):
    store = CheckpointStore(s3_client, None)
    assert not store.enabled
    assert store.load() == Checkpoint()
    store.save(Checkpoint(last_query_execution_id="q00"))
    assert s3_client.puts == []


def test_blank_state_uri_disables_checkpointing(s3_client):
    assert not CheckpointStore(s3_client, "").enabled


def test_missing_document_is_empty_checkpoint_with_warning(s3_client, caplog):
    caplog.set_level(logging.WARNING)
    checkpoint = CheckpointStore(s3_client, STATE_URI).load()
    assert checkpoint.last_query_execution_id is None
    assert "No state found at s3://state/uri.json" in caplog.text


def test_loads_last_query_execution_id(s3_client):
    s3_client.put_json("state", "uri.json", {"last_query_execution_id": "q03"})
    assert CheckpointStore(s3_client, STATE_URI).load().last_query_execution_id == "q03"


def test_other_read_errors_propagate():
    class DeniedS3(FakeS3Client):
        def get_object(self, Bucket, Key):
            raise client_error("AccessDenied", "GetObject")

    with pytest.raises(Exception, match="AccessDenied"):
        CheckpointStore(DeniedS3(), STATE_URI).load()


def test_save_preserves_unknown_fields(s3_client):
    s3_client.put_json(
        "state", "uri.json", {"last_query_execution_id": "q09", "schema_version": 3, "note": "keep"}
    )
    store = CheckpointStore(s3_client, STATE_URI)
    loaded = store.load()
    store.save(loaded.advanced_to("q00"))

    assert s3_client.get_json("state", "uri.json") == {
        "last_query_execution_id": "q00",
        "schema_version": 3,
        "note": "keep",
    }
    # the loaded checkpoint itself is left untouched
    assert loaded.last_query_execution_id == "q09"


def test_state_uri_without_key_is_rejected(s3_client):
    with pytest.raises(ConfigurationError):
        CheckpointStore(s3_client, "s3://state-bucket/")


@pytest.mark.parametrize(
    "state_uri",
    ["S3://state-bucket/state.json", "s3:/state-bucket/state.json", "gs://state-bucket/state.json"],
)
def test_non_s3_scheme_is_not_a_local_path(tmp_path, monkeypatch, s3_client, state_uri):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigurationError):
        CheckpointStore(s3_client, state_uri)
    assert list(tmp_path.iterdir()) == []


def test_local_file_round_trip(tmp_path, s3_client):
    path = tmp_path / "nested" / "state.json"
    store = CheckpointStore(s3_client, str(path))
    assert store.load() == Checkpoint()

    store.save(Checkpoint(last_query_execution_id="q00", extra_field=1))

    assert json.loads(path.read_text()) == {"last_query_execution_id": "q00", "extra_field": 1}
    assert not (tmp_path / "nested" / "state.json.tmp").exists()
    assert store.load().last_query_execution_id == "q00"
    assert s3_client.puts == []


def test_checkpoint_file_helpers(tmp_path):
    path = str(tmp_path / "cp.json")
    assert load_checkpoint_file(path) is None
    store_checkpoint_file(path, {"last_query_execution_id": "abc"})
    assert load_checkpoint_file(path) == {"last_query_execution_id": "abc"}
