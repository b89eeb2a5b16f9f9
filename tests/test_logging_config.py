from __future__ import annotations

import logging

from openai_invoice_downloader.logging_config import RedactSecretsFilter, configure_logging, redact_secrets


def test_redact_bearer_token_and_session_link() -> None:
    text = "token ek_live_abcdefGHIJKLmnop_qr-s url https://pay.openai.com/p/session/live_XYZ123?x=1 done"
    out = redact_secrets(text)
    assert "GHIJKL" not in out
    assert "ek_live_abcdef..." in out
    assert "https://pay.openai.com/p/session/<redacted> done" in out


def test_filter_rewrites_formatted_record() -> None:
    record = logging.LogRecord(
        "x", logging.INFO, __file__, 1, "Opening %s", ("https://pay.openai.com/p/session/secret",), None
    )
    assert RedactSecretsFilter().filter(record) is True
    assert record.getMessage() == "Opening https://pay.openai.com/p/session/<redacted>"


def test_configure_logging_writes_redacted_file(tmp_path) -> None:
    log_file = tmp_path / "logs" / "run.log"
    configure_logging(level="DEBUG", file_path=str(log_file))
    try:
        logging.getLogger("openai_invoice_downloader.test").info("bearer ek_live_1234567890abcdef")
        for handler in logging.getLogger().handlers:
            handler.flush()
        content = log_file.read_text(encoding="utf-8")
        assert "ek_live_123456..." in content
        assert "7890abcdef" not in content
        assert logging.getLogger("playwright").level == logging.WARNING
    finally:
        configure_logging(level="INFO")
