"""Tests for groundwork reprocess command."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from groundwork.cli.main import app
from groundwork.db.models import DocumentChunk, KnowledgeSource, SourceStatus, SourceType
from groundwork.ingest.parser import ParsedDocument

runner = CliRunner()

_URL = "https://example.com/leasing"
_PAGE = (
    "The leasing office is open 10am-6pm on weekdays and closed on public holidays. "
    "Tours can be booked online at any time."
)


def _add_url_source(repo) -> None:
    repo.add_source(
        KnowledgeSource(
            id="web",
            name="leasing page",
            type=SourceType.URL,
            status=SourceStatus.READY,
            metadata={"url": _URL},
        )
    )
    repo.add_chunks([DocumentChunk(knowledge_source_id="web", chunk_index=0, content="Old hours.")])


def test_reprocess_no_db(db_path: Path) -> None:
    result = runner.invoke(app, ["reprocess", "--id", "web", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "No database found" in result.output


def test_reprocess_source_not_found(open_repo, db_path: Path, patched_embedder) -> None:
    result = runner.invoke(app, ["reprocess", "--id", "missing", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Source not found" in result.output


def test_reprocess_refuses_uploaded_text(open_repo, db_path: Path, patched_embedder) -> None:
    open_repo.add_source(KnowledgeSource(id="t1", name="notes", type=SourceType.TEXT, status=SourceStatus.READY))
    open_repo.add_chunks([DocumentChunk(knowledge_source_id="t1", chunk_index=0, content="Keep me.")])

    result = runner.invoke(app, ["reprocess", "--id", "t1", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "original file not stored" in result.output
    assert open_repo.count_chunks_by_source("t1") == 1


def test_reprocess_url_source(open_repo, db_path: Path, patched_embedder) -> None:
    _add_url_source(open_repo)
    parsed = ParsedDocument(content=_PAGE, char_count=len(_PAGE), title="Leasing")
    with patch("groundwork.ingest.processor.parse_url", return_value=parsed) as parse:
        result = runner.invoke(app, ["reprocess", "--id", "web", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Reprocessed leasing page: 1 chunks stored" in result.output
    assert parse.call_args[0][0] == _URL
    assert [c.content for c in open_repo.list_chunks("web")] == [_PAGE]


def test_reprocess_fetch_failure(open_repo, db_path: Path, patched_embedder) -> None:
    _add_url_source(open_repo)
    with patch("groundwork.ingest.processor.parse_url", side_effect=RuntimeError("Failed to fetch URL: 404")):
        result = runner.invoke(app, ["reprocess", "--id", "web", "--db", str(db_path)])

    assert result.exit_code == 1
    assert "Processing failed" in result.output
    assert open_repo.get_source("web").status == SourceStatus.ERROR
