import logging
import os
import re
from pathlib import Path
from typing import Optional


# Portal bearer tokens and login-link session paths are single-use secrets.
_SECRET_PATTERNS = (
    (re.compile(r"(ek_live_[A-Za-z0-9]{6})[A-Za-z0-9_-]+"), r"\1..."),
    (re.compile(r"(/p/session/)[^\s\"'<>]+"), r"\1<redacted>"),
)


def redact_secrets(text: str) -> str:
    for pattern, repl in _SECRET_PATTERNS:
        text = pattern.sub(repl, text)
    return text


class RedactSecretsFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:
            return True
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def configure_logging(level: str = "INFO", file_path: Optional[str] = None) -> None:
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    secrets_filter = RedactSecretsFilter()
    for handler in handlers:
        handler.addFilter(secrets_filter)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=handlers,
        force=True,  # the CLI configures once from env, then again from the loaded config
    )

    for noisy in ("playwright", "urllib3", "requests"):
        logging.getLogger(noisy).setLevel(os.getenv("NOISY_LOG_LEVEL", "WARNING"))
