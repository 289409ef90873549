"""Tests for groundwork rich error messages."""

from __future__ import annotations

import pytest

from groundwork.cli.errors import (
    err_cannot_reprocess,
    err_config,
    err_file_missing,
    err_file_too_large,
    err_invalid_url,
    err_no_api_key,
    err_no_db,
    err_no_input,
    err_processing_failed,
    err_source_not_found,
    err_ssrf_blocked,
    err_unsupported_file,
    warn_no_results,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _has_action(msg: str) -> bool:
    """Every error must tell the user what to do next."""
    lower = msg.lower()
    return any(
        kw in lower
        for kw in ["run:", "set:", "use ", "use:", "fix ", "check ", "split", "remove", "ingest", "rephrase"]
    )


# ---------------------------------------------------------------------------
# Every message is actionable
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "msg",
    [
        err_no_api_key("openai", "OPENAI_API_KEY"),
        err_no_db(),
        err_config("retrieval.top_k must be >= 1"),
        err_no_input(),
        err_file_missing("a.pdf"),
        err_file_too_large("a.pdf", 12 * 1024 * 1024),
        err_unsupported_file("a.docx"),
        err_invalid_url("ftp://x", "Unsupported URL scheme 'ftp'"),
        err_ssrf_blocked("http://10.0.0.1"),
        err_processing_failed("faq", "rate limited"),
        err_source_not_found("s1"),
        err_cannot_reprocess("s1", "Cannot reprocess: original file not stored"),
        warn_no_results(),
    ],
)
def test_message_has_action(msg: str) -> None:
    assert _has_action(msg)


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


def test_err_no_api_key_names_provider_and_env_var() -> None:
    msg = err_no_api_key("cohere", "COHERE_API_KEY")
    assert "cohere" in msg
    assert "export COHERE_API_KEY=" in msg


def test_err_no_db_includes_path() -> None:
    assert "kb/.groundwork.db" in err_no_db("kb/.groundwork.db")


def test_err_file_too_large_reports_limit_and_size() -> None:
    msg = err_file_too_large("big.pdf", 12 * 1024 * 1024)
    assert "10 MB limit" in msg
    assert "12.0 MB" in msg


def test_err_processing_failed_includes_reason() -> None:
    msg = err_processing_failed("faq", "rate limited")
    assert "faq" in msg
    assert "rate limited" in msg
    assert "groundwork status" in msg


def test_err_cannot_reprocess_includes_source() -> None:
    msg = err_cannot_reprocess("s1", "Cannot reprocess: original file not stored")
    assert "'s1'" in msg
    assert "original file not stored" in msg
