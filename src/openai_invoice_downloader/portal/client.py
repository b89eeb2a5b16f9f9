from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from playwright.sync_api import BrowserContext, Page, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..billing.client import USER_AGENT, extract_login_credentials
from ..config import PortalConfig
from ..models import Credentials, Invoice
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)


class BillingPortalClient:
    """
    Browser automation for the Stripe-hosted billing portal (`https://pay.openai.com/p/...`).

    Every public method launches its own browser and closes it before returning, on success or error.
    """

    def __init__(
        self,
        cfg: PortalConfig,
        *,
        headless: bool = True,
        slow_mo_ms: int = 0,
        selectors: Optional[PortalSelectors] = None,
    ) -> None:
        self.cfg = cfg
        self.headless = headless
        self.slow_mo_ms = int(slow_mo_ms or 0)
        self.selectors = selectors or PortalSelectors()
        self.debug_dir = cfg.debug_dir

    @contextmanager
    def _open_page(self) -> Iterator[tuple[BrowserContext, Page]]:
        with sync_playwright() as p:
            # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
            # Playwright browser cache is missing.
            try:
                browser = p.chromium.launch(headless=self.headless, slow_mo=self.slow_mo_ms)
            except Exception as e:
                msg = str(e)
                if "Executable doesn't exist" not in msg:
                    raise

                logger.warning(
                    "Playwright Chromium executable missing; falling back to system browser channel. (%s)",
                    msg,
                )
                try:
                    browser = p.chromium.launch(headless=self.headless, slow_mo=self.slow_mo_ms, channel="chrome")
                except Exception:
                    browser = p.chromium.launch(headless=self.headless, slow_mo=self.slow_mo_ms, channel="msedge")
            try:
                ctx = browser.new_context(user_agent=USER_AGENT)
                page = ctx.new_page()
                yield ctx, page
            finally:
                try:
                    browser.close()
                    logger.debug("Browser closed")
                except Exception:
                    logger.debug("Failed to close browser cleanly.", exc_info=True)

    def request_login_link(self, email: str) -> bool:
        """
        Submit the portal's login form so it emails a new link. Best effort; never raises.
        """
        url = self.cfg.login_page_url
        try:
            with self._open_page() as (_ctx, page):
                logger.info("Opening login page %s", url)
                page.goto(url)

                email_input = self._first_email_input(page)
                if email_input is None:
                    logger.warning("Could not find email input field on login page")
                    self._save_debug(page, name_prefix="login_email_input_missing")
                    return False

                email_input.fill(email)
                email_input.press("Enter")
                page.wait_for_timeout(2000)

                try:
                    self._click_submit_button(page)
                except Exception:
                    logger.warning("Error while looking for a submit button.", exc_info=True)

                page.wait_for_timeout(5000)
                logger.info("Login link request submitted via browser")
                return True
        except Exception as e:
            logger.error("Browser login link request failed: %s", e)
            return False

    def validate_login_link(self, login_url: str) -> bool:
        """
        True when the link lands on a live portal (invoice links or portal root visible).
        """
        try:
            with self._open_page() as (_ctx, page):
                page.goto(login_url, wait_until="domcontentloaded")
                page.wait_for_timeout(2000)

                current = (page.url or "").lower()
                if any(marker in current for marker in self.selectors.invalid_url_markers):
                    logger.info("Login link appears to be expired or invalid (landed on %s)", page.url)
                    return False

                for selector, label in (
                    (self.selectors.invoice_link, "invoice links"),
                    (self.selectors.portal_root, "portal root element"),
                ):
                    try:
                        page.wait_for_selector(selector, timeout=5000)
                        logger.info("Login link appears to be valid (found %s)", label)
                        return True
                    except PlaywrightTimeoutError:
                        continue

                logger.info("Could not verify the portal loaded correctly")
                self._save_debug(page, name_prefix="portal_not_verified")
                return False
        except Exception as e:
            logger.error("Error testing login link: %s", e)
            return False

    def scrape_invoices(self, login_url: str) -> list[Invoice]:
        """
        Open the portal and read invoice rows from the rendered history list.
        """
        try:
            with self._open_page() as (_ctx, page):
                page.goto(login_url, wait_until="domcontentloaded")
                invoices = self.extract_invoice_rows(page)
                if not invoices:
                    self._save_debug(page, name_prefix="no_invoices")
                return invoices
        except Exception as e:
            logger.error("Error accessing billing portal: %s", e)
            return []

    def extract_credentials(self, login_url: str) -> Optional[Credentials]:
        """
        Browser variant of credential extraction for client-rendered pages; also captures
        context cookies (incl. the CSRF cookie).
        """
        try:
            with self._open_page() as (ctx, page):
                page.goto(login_url, wait_until="domcontentloaded")
                page.wait_for_timeout(2000)

                cookies = {c["name"]: c["value"] for c in ctx.cookies()}
                creds = extract_login_credentials(page.content(), cookies=cookies)
                if creds is None:
                    logger.info("Could not find session id or bearer token in rendered page")
                    return None

                logger.info(
                    "Found session id %s and bearer token %s via browser (%d cookies, csrf=%s)",
                    creds.session_id,
                    creds.masked_token(),
                    len(creds.cookies),
                    "yes" if creds.csrf_token else "no",
                )
                return creds
        except Exception as e:
            logger.warning("Failed to extract credentials with browser: %s", e)
            return None

    def extract_invoice_rows(self, page: Page) -> list[Invoice]:
        s = self.selectors
        invoices: list[Invoice] = []

        try:
            page.wait_for_selector(s.invoice_link, timeout=10_000)
        except PlaywrightTimeoutError:
            logger.warning("No invoice links appeared on the portal page")
            return invoices

        links = page.locator(s.invoice_link).all()
        logger.info("Found %d invoice links on the page", len(links))

        for idx, link in enumerate(links, start=1):
            try:
                href = link.get_attribute("href") or ""
                # Short, independent timeouts: one missing field must not block the others.
                spans = link.locator(s.row_text_span)
                date = self._read_text(spans.first, default="Unknown date")
                amount = self._read_text(spans.nth(1), default="Unknown amount")
                status = self._read_text(link.locator(s.row_status_span).first, default="Unknown status")

                invoice = Invoice(
                    id=f"invoice_{idx}",
                    hosted_url=href,
                    date=date,
                    amount=amount,
                    status=status,
                )
                invoices.append(invoice)
                logger.info("Found invoice: %s", invoice.summary())
            except Exception as e:
                logger.error("Error extracting invoice row %d: %s", idx, e)

        return invoices

    def _read_text(self, locator, *, default: str, timeout_ms: int = 1000) -> str:
        try:
            text = locator.text_content(timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return default
        text = re.sub(r"\s+", " ", text or "").strip()
        return text or default

    def _first_email_input(self, page: Page):
        for selector in self.selectors.email_inputs:
            try:
                handle = page.wait_for_selector(selector, timeout=15_000)
            except PlaywrightTimeoutError:
                continue
            if handle is not None:
                logger.info("Found email field with selector: %s", selector)
                return handle
        return None

    def _click_submit_button(self, page: Page) -> bool:
        hints = tuple(h.lower() for h in self.selectors.submit_hints)
        for button in page.locator("button").all():
            try:
                if not button.is_visible():
                    continue
                btn_type = (button.get_attribute("type") or "").lower()
                cls = (button.get_attribute("class") or "").lower()
                text = (button.text_content() or "").strip()
            except Exception:
                continue

            if btn_type == "submit" or any(h in cls or h in text.lower() for h in hints):
                logger.info("Clicking submit button with text: %r", text)
                button.click()
                return True
        return False

    def _save_debug(self, page: Page, *, name_prefix: str) -> None:
        try:
            out_dir = Path(self.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            page.screenshot(path=str(out_dir / f"{name_prefix}.png"), full_page=True)
            (out_dir / f"{name_prefix}.html").write_text(page.content(), encoding="utf-8")
            try:
                (out_dir / f"{name_prefix}.txt").write_text(page.inner_text("body"), encoding="utf-8")
            except Exception:
                pass
        except Exception:
            logger.debug("Failed to save debug artifacts.", exc_info=True)
