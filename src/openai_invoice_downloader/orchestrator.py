from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence, Union

from .config import RunConfig
from .models import Credentials, Invoice
from .util.strategies import Outcome, first_success


logger = logging.getLogger(__name__)


class RunState(str, enum.Enum):
    IDLE = "idle"
    REQUESTING_LINK = "requesting_link"
    WAITING_FOR_EMAIL = "waiting_for_email"
    EXTRACTING_CREDENTIALS = "extracting_credentials"
    FETCHING_INVOICES = "fetching_invoices"
    VALIDATING_LINK = "validating_link"
    SCRAPING_INVOICES = "scraping_invoices"
    DOWNLOADING = "downloading"
    RETRYING = "retrying"
    DONE = "done"
    FAILED = "failed"


class LinkRequester(Protocol):
    def request(self) -> None: ...


class LinkSource(Protocol):
    def check(self) -> Optional[str]: ...


class InvoiceApi(Protocol):
    def fetch_invoices(self, creds: Credentials) -> Optional[list[Invoice]]: ...


class InvoicePortal(Protocol):
    def validate_login_link(self, login_url: str) -> bool: ...

    def scrape_invoices(self, login_url: str) -> list[Invoice]: ...


class Downloader(Protocol):
    def download_invoices(
        self, invoices: Sequence[Invoice], target_dir: Union[str, Path], only_most_recent: bool = True
    ) -> int: ...


CredentialExtractor = tuple[str, Callable[[str], Optional[Credentials]]]


@dataclass(frozen=True)
class RunOptions:
    force_request: bool = False
    download_dir: str = "invoices"
    all_invoices: bool = False
    list_only: bool = False


@dataclass
class RunResult:
    ok: bool
    state: RunState
    attempts: int = 0
    link_requests: int = 0
    source: str = ""
    invoices: list[Invoice] = field(default_factory=list)
    downloaded: int = 0


class RunOrchestrator:
    """
    Drives one run: get a login link from the mailbox (requesting one when needed), turn it into
    invoices via the API or the portal UI, download them, and retry with fixed delays on failure.

    idle -> [requesting_link] -> waiting_for_email -> extracting_credentials -> fetching_invoices
         -> downloading -> done
    fetching_invoices (no result) -> validating_link -> scraping_invoices -> downloading -> done
    any failure -> requesting_link / retrying -> waiting_for_email, until `max_attempts` -> failed
    """

    def __init__(
        self,
        *,
        requester: LinkRequester,
        mailbox: LinkSource,
        credential_extractors: Sequence[CredentialExtractor],
        api: InvoiceApi,
        portal: InvoicePortal,
        downloader: Downloader,
        policy: RunConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.requester = requester
        self.mailbox = mailbox
        self.credential_extractors = list(credential_extractors)
        self.api = api
        self.portal = portal
        self.downloader = downloader
        self.policy = policy
        self._sleep = sleep

        self.state = RunState.IDLE
        self.link_requests = 0
        self.attempts = 0

    @property
    def link_requested(self) -> bool:
        return self.link_requests > 0

    def run(self, options: RunOptions) -> RunResult:
        self.state = RunState.IDLE
        self.link_requests = 0
        self.attempts = 0
        max_attempts = self.policy.max_attempts

        if options.force_request:
            self._request_link_and_wait("requested explicitly")

        for attempt in range(1, max_attempts + 1):
            self.attempts = attempt
            waited = False

            self._enter(RunState.WAITING_FOR_EMAIL)
            logger.info("Checking for login email (attempt %d/%d)...", attempt, max_attempts)
            login_url = self._poll_mailbox()

            if login_url:
                result = self._process_link(login_url, options)
                if result is not None:
                    return result
                self._request_link_and_wait("login link did not yield invoices")
                waited = True
            elif not self.link_requested:
                self._request_link_and_wait("no valid login link found in mailbox")
                waited = True

            if not waited and attempt < max_attempts:
                self._enter(RunState.RETRYING)
                logger.info("Waiting %s seconds before checking again...", self.policy.retry_delay_seconds)
                self._sleep(self.policy.retry_delay_seconds)

        self._enter(RunState.FAILED)
        logger.error("Failed to find or use a valid login link after %d attempts.", max_attempts)
        return RunResult(
            ok=False,
            state=self.state,
            attempts=self.attempts,
            link_requests=self.link_requests,
        )

    def _enter(self, state: RunState) -> None:
        if state is not self.state:
            logger.debug("Run state %s -> %s", self.state.value, state.value)
        self.state = state

    def _request_link_and_wait(self, reason: str) -> None:
        self._enter(RunState.REQUESTING_LINK)
        logger.info("Requesting a new login link (%s)", reason)
        self.link_requests += 1
        try:
            self.requester.request()
        except Exception:
            logger.error("Login link request raised unexpectedly.", exc_info=True)
        logger.info("Waiting %s seconds for email to arrive...", self.policy.link_wait_seconds)
        self._sleep(self.policy.link_wait_seconds)

    def _poll_mailbox(self) -> Optional[str]:
        try:
            return self.mailbox.check()
        except Exception as e:
            logger.error("Error checking mailbox: %s", e)
            return None

    def _process_link(self, login_url: str, options: RunOptions) -> Optional[RunResult]:
        """
        Returns a finished RunResult, or None when this link should be replaced by a new one.
        """
        try:
            self._enter(RunState.EXTRACTING_CREDENTIALS)
            creds = first_success(
                [
                    (name, lambda fn=fn: Outcome.from_optional(fn(login_url)))
                    for name, fn in self.credential_extractors
                ],
                chain="credentials",
            )

            if creds is not None:
                self._enter(RunState.FETCHING_INVOICES)
                invoices = self.api.fetch_invoices(creds)
                if invoices:
                    return self._finish(invoices, options, source="api")
            logger.info("API method failed, falling back to browser scraping...")

            self._enter(RunState.VALIDATING_LINK)
            if not self.portal.validate_login_link(login_url):
                logger.info("Login link is invalid or expired.")
                return None

            self._enter(RunState.SCRAPING_INVOICES)
            invoices = self.portal.scrape_invoices(login_url)
            if not invoices:
                logger.info("No invoices found with the current link.")
                return None
            return self._finish(invoices, options, source="portal")
        except Exception as e:
            logger.error("Error processing login link: %s", e, exc_info=True)
            return None

    def _finish(self, invoices: list[Invoice], options: RunOptions, *, source: str) -> RunResult:
        logger.info("Found %d invoices via %s:", len(invoices), source)
        for i, inv in enumerate(invoices, start=1):
            logger.info("%d. %s - %s", i, inv.summary(), inv.description)
            logger.info("   %s", inv.pdf_url or inv.hosted_url)

        downloaded = 0
        if options.list_only:
            logger.info("List-only mode specified. Invoices have been listed but not downloaded.")
        else:
            self._enter(RunState.DOWNLOADING)
            downloaded = self.downloader.download_invoices(
                invoices, options.download_dir, only_most_recent=not options.all_invoices
            )

        self._enter(RunState.DONE)
        logger.info("Successfully processed invoices!")
        return RunResult(
            ok=True,
            state=self.state,
            attempts=self.attempts,
            link_requests=self.link_requests,
            source=source,
            invoices=list(invoices),
            downloaded=downloaded,
        )
