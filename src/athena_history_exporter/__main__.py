"""Main CLI entry point for the athena-history-exporter.

This module provides a command-line interface using Typer to run one export:
1.  Loading configuration (environment, `.env`, command-line overrides).
2.  Loading the checkpoint written by the previous run.
3.  Listing Athena query executions newest first until the checkpoint.
4.  Writing their metadata to the partitioned history log on S3.
5.  Storing the new checkpoint.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import typer
from dotenv import find_dotenv, load_dotenv

from .bootstrap import build_history_saver
from .config import load_settings
from .errors import ConfigurationError

# Load .env file if present (before any config access)
_env_file = find_dotenv(usecwd=True)
if _env_file:
    load_dotenv(_env_file)

app = typer.Typer(help="Athena query history exporter CLI")


@app.callback()
def main() -> None:  # pragma: no cover - simple callback
    """athena-history-exporter CLI.

    Use a subcommand like 'save-history' to run an export.
    """
    pass


@app.command("save-history", help="Export query executions newer than the checkpoint.")
def save_history(
    history_base_uri: Optional[str] = typer.Option(
        None, help="S3 URI for history objects (overrides HISTORY_BASE_URI)"
    ),
    state_uri: Optional[str] = typer.Option(
        None, help="Checkpoint location, s3://bucket/key or a local path (overrides STATE_URI)"
    ),
    batch_size: Optional[int] = typer.Option(
        None, help="Records per history object (overrides BATCH_SIZE)"
    ),
    region: Optional[str] = typer.Option(
        None, help="AWS region for Athena and S3 (overrides AWS_REGION)"
    ),
    work_group: Optional[str] = typer.Option(
        None, help="Athena work group to export (overrides WORK_GROUP)"
    ),
) -> None:
    """Run one incremental export and report the newest processed ID."""
    overrides: dict[str, Any] = {}
    if history_base_uri is not None:
        overrides["HISTORY_BASE_URI"] = history_base_uri
    if state_uri is not None:
        overrides["STATE_URI"] = state_uri
    if batch_size is not None:
        overrides["BATCH_SIZE"] = batch_size
    if region is not None:
        overrides["AWS_REGION"] = region
    if work_group is not None:
        overrides["WORK_GROUP"] = work_group
    try:
        settings = load_settings(**overrides)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=2) from e
    logging.basicConfig(level=settings.LOG_LEVEL)
    if settings.STATE_URI is None:
        logging.getLogger(__name__).warning(
            "STATE_URI not set; checkpointing disabled, every run rescans all listed executions"
        )

    first_id = build_history_saver(settings).save_history()
    if first_id is None:
        typer.echo("No new query executions.")
    else:
        typer.echo(f"Exported query executions up to {first_id}.")


if __name__ == "__main__":  # pragma: no cover
    app()
