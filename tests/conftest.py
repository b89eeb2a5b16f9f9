from __future__ import annotations

import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


_ENV_KEYS = (
    "MAILBOX_USER",
    "MAILBOX_APP_PASSWORD",
    "MAILBOX_HOST",
    "MAILBOX_PORT",
    "MAILBOX_FOLDER",
    "MAILBOX_SUBJECT",
    "MAILBOX_SENDER_HINTS",
    "MAILBOX_TIMEOUT_SECONDS",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_PASSWORD",
    "SMTP_TIMEOUT_SECONDS",
    "RECIPIENT_EMAIL",
    "INVOICE_DISPLAY_NAME",
    "INVOICE_FILENAME_NAME",
    "OPENAI_PAY_ID",
    "PORTAL_BASE_URL",
    "PORTAL_PUBLISHABLE_KEY",
    "PORTAL_STRIPE_VERSION",
    "PORTAL_DEBUG_DIR",
    "RUN_MAX_ATTEMPTS",
    "RUN_LINK_WAIT_SECONDS",
    "RUN_RETRY_DELAY_SECONDS",
    "RUN_DOWNLOAD_DELAY_SECONDS",
    "DOWNLOAD_DIR",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any real configuration from the environment so tests only see what they set."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def app_env(clean_env, tmp_path):
    clean_env.setenv("MAILBOX_USER", "me@gmail.com")
    clean_env.setenv("MAILBOX_APP_PASSWORD", "abcd efgh ijkl mnop")
    clean_env.setenv("RECIPIENT_EMAIL", "books@example.com")
    clean_env.setenv("INVOICE_FILENAME_NAME", "JaneDoe")
    clean_env.setenv("OPENAI_PAY_ID", "cus_portal123")
    clean_env.setenv("LOG_FILE", str(tmp_path / "invoices.log"))
    return clean_env
