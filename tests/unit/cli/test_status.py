"""Tests for groundwork status and version commands."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from groundwork.cli.main import app
from groundwork.db.models import DocumentChunk, KnowledgeSource, SourceStatus, SourceType

runner = CliRunner()


# ---------------------------------------------------------------------------
# groundwork --version / version
# ---------------------------------------------------------------------------


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "groundwork" in result.output


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("groundwork ")


# ---------------------------------------------------------------------------
# groundwork status
# ---------------------------------------------------------------------------


def test_status_no_db(db_path: Path) -> None:
    result = runner.invoke(app, ["status", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No database found" in result.output
    assert not db_path.exists()


def test_status_empty_db(open_repo, db_path: Path) -> None:
    result = runner.invoke(app, ["status", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "Knowledge Base" in result.output
    assert "No sources ingested yet" in result.output


def test_status_lists_sources(open_repo, db_path: Path) -> None:
    open_repo.add_source(KnowledgeSource(id="s1", name="faq", type=SourceType.TXT, status=SourceStatus.READY))
    open_repo.add_chunks([DocumentChunk(knowledge_source_id="s1", chunk_index=0, content="Parking is free.")])
    open_repo.add_source(
        KnowledgeSource(
            id="s2",
            name="site",
            type=SourceType.URL,
            status=SourceStatus.ERROR,
            metadata={"error_message": "timeout"},
        )
    )

    result = runner.invoke(app, ["status", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "(1 ready)" in result.output
    assert "faq" in result.output
    assert "ready" in result.output
    assert "error" in result.output
    assert "timeout" in result.output


def test_status_shows_error_only_for_failed_sources(open_repo, db_path: Path) -> None:
    open_repo.add_source(
        KnowledgeSource(
            id="s1",
            name="faq",
            type=SourceType.TXT,
            status=SourceStatus.READY,
            metadata={"error_message": "stale"},
        )
    )
    result = runner.invoke(app, ["status", "--db", str(db_path)])
    assert "stale" not in result.output
