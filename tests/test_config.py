from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from openai_invoice_downloader.config import DEFAULT_PUBLISHABLE_KEY, load_config


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_env_only_config_with_defaults(app_env, tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "missing.yaml")

    assert cfg.mailbox.user == "me@gmail.com"
    assert cfg.mailbox.host == "imap.gmail.com"
    assert cfg.mailbox.port == 993
    assert cfg.mailbox.sender_hints == ["openai", "stripe"]
    assert cfg.portal.base_url == "https://pay.openai.com"
    assert cfg.portal.publishable_key == DEFAULT_PUBLISHABLE_KEY
    assert cfg.portal.login_page_url == "https://pay.openai.com/p/login/cus_portal123"
    assert cfg.run.max_attempts == 10
    assert cfg.run.retry_delay_seconds == 15
    assert cfg.run.download_dir == "invoices"


def test_smtp_and_display_name_default_from_mailbox(app_env, tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg.smtp.host == "smtp.gmail.com"
    assert cfg.smtp.port == 465
    assert cfg.smtp.user == "me@gmail.com"
    assert cfg.smtp.password == "abcd efgh ijkl mnop"
    assert cfg.notify.display_name == "JaneDoe"


def test_secrets_hidden_from_repr(app_env, tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "missing.yaml")
    assert "abcd efgh" not in repr(cfg)


def test_yaml_overrides_env_and_expands_vars(app_env, tmp_path: Path) -> None:
    app_env.setenv("OTHER_RECIPIENT", "finance@example.com")
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
notify:
  recipient: "${OTHER_RECIPIENT}"
  display_name: "Jane Doe"
portal:
  base_url: "https://pay.example.test/"
run:
  max_attempts: 3
""",
    )
    cfg = load_config(cfg_path)
    assert cfg.notify.recipient == "finance@example.com"
    assert cfg.notify.display_name == "Jane Doe"
    assert cfg.notify.filename_name == "JaneDoe"  # untouched env value survives the merge
    assert cfg.portal.base_url == "https://pay.example.test"
    assert cfg.run.max_attempts == 3


def test_sender_hints_env_parsing(app_env, tmp_path: Path) -> None:
    app_env.setenv("MAILBOX_SENDER_HINTS", "stripe.com, openai.com stripe.com")
    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg.mailbox.sender_hints == ["stripe.com", "openai.com"]


def test_missing_mailbox_credentials_rejected(app_env, tmp_path: Path) -> None:
    app_env.delenv("MAILBOX_APP_PASSWORD")
    with pytest.raises(ValidationError):
        load_config(tmp_path / "missing.yaml")


@pytest.mark.parametrize("value", ["Jane Doe", "a/b", ""])
def test_filename_name_must_be_path_safe(app_env, tmp_path: Path, value: str) -> None:
    app_env.setenv("INVOICE_FILENAME_NAME", value)
    with pytest.raises(ValidationError):
        load_config(tmp_path / "missing.yaml")


def test_invalid_pay_id_rejected(app_env, tmp_path: Path) -> None:
    app_env.setenv("OPENAI_PAY_ID", "not a slug!")
    with pytest.raises(ValidationError):
        load_config(tmp_path / "missing.yaml")


def test_zero_attempts_rejected(app_env, tmp_path: Path) -> None:
    app_env.setenv("RUN_MAX_ATTEMPTS", "0")
    with pytest.raises(ValidationError):
        load_config(tmp_path / "missing.yaml")


def test_mail_timeouts_default_and_env_override(app_env, tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg.mailbox.timeout_seconds == 30
    assert cfg.smtp.timeout_seconds == 30

    app_env.setenv("MAILBOX_TIMEOUT_SECONDS", "5")
    app_env.setenv("SMTP_TIMEOUT_SECONDS", "12.5")
    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg.mailbox.timeout_seconds == 5
    assert cfg.smtp.timeout_seconds == 12.5


def test_non_positive_timeout_rejected(app_env, tmp_path: Path) -> None:
    app_env.setenv("MAILBOX_TIMEOUT_SECONDS", "0")
    with pytest.raises(ValidationError):
        load_config(tmp_path / "missing.yaml")
