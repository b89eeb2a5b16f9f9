from __future__ import annotations

import argparse
import logging
import os
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .billing.client import BillingApiClient
from .config import AppConfig, load_config
from .downloader import InvoiceDownloader
from .logging_config import configure_logging
from .mailbox import MailboxWatcher
from .notifier import EmailNotifier
from .orchestrator import RunOptions, RunOrchestrator
from .portal.client import BillingPortalClient
from .requester import LoginLinkRequester


logger = logging.getLogger("openai_invoice_downloader")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="openai-invoice-downloader",
        description="Fetch OpenAI billing invoices via an emailed portal login link and email the PDFs.",
    )
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )
    p.add_argument("--config", default="config.yaml", help="Optional YAML config overriding env (default: config.yaml)")
    p.add_argument(
        "--request",
        action="store_true",
        help="Request a new login link before checking the mailbox.",
    )
    p.add_argument(
        "--download-dir",
        default="",
        help="Directory to save downloaded invoices (default: run.download_dir, usually 'invoices').",
    )
    p.add_argument(
        "--headful",
        "--no-headless",
        dest="headful",
        action="store_true",
        help="Run the browser visibly (debug).",
    )
    p.add_argument(
        "--all-invoices",
        action="store_true",
        help="Download all invoices instead of only the most recent one.",
    )
    p.add_argument("--list-only", action="store_true", help="List available invoices without downloading.")
    p.add_argument("--slowmo-ms", type=int, default=0, help="Playwright slow motion in milliseconds (debug).")
    return p


def build_orchestrator(cfg: AppConfig, *, headless: bool = True, slow_mo_ms: int = 0) -> RunOrchestrator:
    api = BillingApiClient(cfg.portal)
    portal = BillingPortalClient(cfg.portal, headless=headless, slow_mo_ms=slow_mo_ms)
    notifier = EmailNotifier(cfg.smtp, cfg.notify)
    downloader = InvoiceDownloader(
        filename_name=cfg.notify.filename_name,
        fetch_pdf=api.download_pdf,
        notifier=notifier,
        delay_seconds=cfg.run.download_delay_seconds,
    )
    return RunOrchestrator(
        requester=LoginLinkRequester(api=api, portal=portal, email=cfg.mailbox.user),
        mailbox=MailboxWatcher(cfg.mailbox),
        credential_extractors=[
            ("static html", api.extract_credentials),
            ("browser", portal.extract_credentials),
        ],
        api=api,
        portal=portal,
        downloader=downloader,
        policy=cfg.run,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    try:
        cfg = load_config(args.config)
    except ValidationError as e:
        logger.error("Invalid configuration:\n%s", e)
        return 2
    configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path)

    logger.info("Starting OpenAI invoice downloader...")
    t0 = time.time()

    options = RunOptions(
        force_request=args.request,
        download_dir=args.download_dir or cfg.run.download_dir,
        all_invoices=args.all_invoices,
        list_only=args.list_only,
    )
    orchestrator = build_orchestrator(cfg, headless=not args.headful, slow_mo_ms=args.slowmo_ms)
    result = orchestrator.run(options)

    logger.info(
        "Run finished (ok=%s state=%s attempts=%d link_requests=%d downloaded=%d seconds=%.2f)",
        str(result.ok).lower(),
        result.state.value,
        result.attempts,
        result.link_requests,
        result.downloaded,
        time.time() - t0,
    )
    return 0 if result.ok else 1
