from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")
_PAY_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_FILENAME_NAME_RE = re.compile(r"^[^\s/\\]+$")

LOGIN_LINK_SUBJECT = "Your customer portal login link"

# Publishable key the portal's own login page uses to call `send_access`.
DEFAULT_PUBLISHABLE_KEY = (
    "pk_live_51HOrSwC6h1nxGoI3lTAgRjYVrz4dU3fVOabyCcKR3pbEJguCVAlqCxdxCUvoRh1XWwRacViovU3kLKvpkjh7IqkW00iXQsjo3n"
)
DEFAULT_STRIPE_VERSION = "2025-06-30.basil"


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _split_csv(value: str) -> list[str]:
    out: list[str] = []
    for item in re.split(r"[,\s]+", (value or "").strip()):
        item = item.strip()
        if item and item not in out:
            out.append(item)
    return out


def _default_config_from_env() -> dict:
    """
    Env-only config so most users only need `.env`; a YAML file can override any key.
    """
    return {
        "mailbox": {
            "user": os.getenv("MAILBOX_USER", ""),
            "app_password": os.getenv("MAILBOX_APP_PASSWORD", ""),
            "host": os.getenv("MAILBOX_HOST", "imap.gmail.com"),
            "port": os.getenv("MAILBOX_PORT", "993"),
            "folder": os.getenv("MAILBOX_FOLDER", "INBOX"),
            "subject": os.getenv("MAILBOX_SUBJECT", LOGIN_LINK_SUBJECT),
            "sender_hints": _split_csv(os.getenv("MAILBOX_SENDER_HINTS", "openai,stripe")),
            "timeout_seconds": os.getenv("MAILBOX_TIMEOUT_SECONDS", "30"),
        },
        "smtp": {
            "host": os.getenv("SMTP_HOST", "smtp.gmail.com"),
            "port": os.getenv("SMTP_PORT", "465"),
            "user": os.getenv("SMTP_USER", ""),
            "password": os.getenv("SMTP_PASSWORD", ""),
            "timeout_seconds": os.getenv("SMTP_TIMEOUT_SECONDS", "30"),
        },
        "notify": {
            "recipient": os.getenv("RECIPIENT_EMAIL", ""),
            "display_name": os.getenv("INVOICE_DISPLAY_NAME", ""),
            "filename_name": os.getenv("INVOICE_FILENAME_NAME", ""),
        },
        "portal": {
            "pay_id": os.getenv("OPENAI_PAY_ID", ""),
            "base_url": os.getenv("PORTAL_BASE_URL", "https://pay.openai.com"),
            "publishable_key": os.getenv("PORTAL_PUBLISHABLE_KEY", DEFAULT_PUBLISHABLE_KEY),
            "stripe_version": os.getenv("PORTAL_STRIPE_VERSION", DEFAULT_STRIPE_VERSION),
            "debug_dir": os.getenv("PORTAL_DEBUG_DIR", "data/debug"),
        },
        "run": {
            "max_attempts": os.getenv("RUN_MAX_ATTEMPTS", "10"),
            "link_wait_seconds": os.getenv("RUN_LINK_WAIT_SECONDS", "45"),
            "retry_delay_seconds": os.getenv("RUN_RETRY_DELAY_SECONDS", "15"),
            "download_delay_seconds": os.getenv("RUN_DOWNLOAD_DELAY_SECONDS", "0.5"),
            "download_dir": os.getenv("DOWNLOAD_DIR", "invoices"),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/invoices.log"),
        },
    }


class MailboxConfig(BaseModel):
    """
    IMAP mailbox that receives the portal's login-link emails.

    For Gmail this needs 2-step verification, an App Password and IMAP access enabled.
    """

    user: str
    app_password: str = Field(repr=False)
    host: str = "imap.gmail.com"
    port: int = 993
    folder: str = "INBOX"
    subject: str = LOGIN_LINK_SUBJECT
    sender_hints: list[str] = Field(default_factory=lambda: ["openai", "stripe"])
    # Connect and per-command socket timeout.
    timeout_seconds: float = Field(default=30, gt=0)

    @field_validator("user", "app_password")
    @classmethod
    def _required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("mailbox.user and mailbox.app_password are required")
        return v


class SmtpConfig(BaseModel):
    host: str = "smtp.gmail.com"
    port: int = 465
    # Empty user/password fall back to the mailbox credentials (same Gmail account).
    user: str = ""
    password: str = Field(default="", repr=False)
    timeout_seconds: float = Field(default=30, gt=0)


class NotifyConfig(BaseModel):
    recipient: str
    display_name: str = ""
    filename_name: str

    @field_validator("recipient")
    @classmethod
    def _recipient_required(cls, v: str) -> str:
        v = (v or "").strip()
        if "@" not in v:
            raise ValueError("notify.recipient must be an email address")
        return v

    @field_validator("filename_name")
    @classmethod
    def _filename_name_safe(cls, v: str) -> str:
        v = (v or "").strip()
        if not _FILENAME_NAME_RE.match(v):
            raise ValueError("notify.filename_name is required and must not contain spaces or path separators")
        return v


class PortalConfig(BaseModel):
    """
    OpenAI's Stripe-hosted billing portal.

    `pay_id` is the trailing part of `https://pay.openai.com/p/login/<pay_id>`.
    """

    pay_id: str
    base_url: str = "https://pay.openai.com"
    publishable_key: str = Field(default=DEFAULT_PUBLISHABLE_KEY, repr=False)
    stripe_version: str = DEFAULT_STRIPE_VERSION
    debug_dir: str = "data/debug"

    @model_validator(mode="after")
    def _validate(self) -> "PortalConfig":
        pay_id = (self.pay_id or "").strip()
        if not pay_id or not _PAY_ID_RE.match(pay_id):
            raise ValueError("portal.pay_id is required (letters, numbers, '_' and '-' only)")

        base_url = (self.base_url or "").strip().rstrip("/")
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("portal.base_url must be a full URL like 'https://pay.openai.com'")

        self.pay_id = pay_id
        self.base_url = base_url
        return self

    @property
    def login_page_url(self) -> str:
        return f"{self.base_url}/p/login/{self.pay_id}"


class RunConfig(BaseModel):
    max_attempts: int = Field(default=10, ge=1)
    link_wait_seconds: float = Field(default=45, ge=0)
    retry_delay_seconds: float = Field(default=15, ge=0)
    download_delay_seconds: float = Field(default=0.5, ge=0)
    download_dir: str = "invoices"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/invoices.log"


class AppConfig(BaseModel):
    mailbox: MailboxConfig
    smtp: SmtpConfig = SmtpConfig()
    notify: NotifyConfig
    portal: PortalConfig
    run: RunConfig = RunConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def _smtp_defaults_from_mailbox(self) -> "AppConfig":
        if not self.smtp.user:
            self.smtp.user = self.mailbox.user
        if not self.smtp.password:
            self.smtp.password = self.mailbox.app_password
        if not self.notify.display_name:
            self.notify.display_name = self.notify.filename_name
        return self


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
