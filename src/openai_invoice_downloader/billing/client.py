from __future__ import annotations

import logging
import re
from typing import Any, Optional

import requests

from ..config import PortalConfig
from ..models import Credentials, Invoice
from ..util.dates import format_unix_date
from ..util.money import cents_to_amount_str


logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
CSRF_COOKIE_NAME = "stripe.customerportal.csrf"

SESSION_ID_RE = re.compile(r"bps_[A-Za-z0-9]+")
BEARER_TOKEN_RE = re.compile(r"ek_live_[A-Za-z0-9_-]+")
CSRF_IN_PAGE_RE = re.compile(r"""csrf["\s:]+["']([^"']+)["']""", re.I)

HOSTED_INVOICE_PREFIX = "https://invoice.stripe.com/i/"
PDF_INVOICE_PREFIX = "https://pay.stripe.com/invoice/"


def extract_login_credentials(
    html: str,
    *,
    cookies: Optional[dict[str, str]] = None,
) -> Optional[Credentials]:
    """
    Pull the portal session id (`bps_…`) and bearer token (`ek_live_…`) out of a portal page.

    Returns None unless both are present; a page without them is usually client-rendered.
    """
    session_match = SESSION_ID_RE.search(html or "")
    token_match = BEARER_TOKEN_RE.search(html or "")
    if not session_match or not token_match:
        return None

    cookies = dict(cookies or {})
    csrf = cookies.get(CSRF_COOKIE_NAME)
    if not csrf:
        m = CSRF_IN_PAGE_RE.search(html or "")
        csrf = m.group(1) if m else None

    return Credentials(
        session_id=session_match.group(0),
        bearer_token=token_match.group(0),
        cookies=cookies,
        csrf_token=csrf,
    )


def normalize_invoice(record: dict[str, Any]) -> Invoice:
    """
    Convert one `data[]` record of the invoice-list endpoint into an Invoice.

    Raises AttributeError/KeyError/TypeError/ValueError on malformed records.
    """
    ts = record.get("effective_at")
    if ts is None:
        # Drafts/voided invoices may not have an effective date yet.
        ts = record["created"]

    status = str(record.get("status") or "")
    lines = (record.get("lines") or {}).get("data") or []
    description = ""
    if lines and isinstance(lines[0], dict):
        description = (lines[0].get("description") or "").strip()

    return Invoice(
        id=str(record["id"]),
        hosted_url=record.get("hosted_invoice_url") or "",
        pdf_url=record.get("invoice_pdf") or None,
        date=format_unix_date(ts),
        amount=cents_to_amount_str(record["amount_paid"]),
        status=status[:1].upper() + status[1:],
        description=description or "Unknown description",
        number=record.get("number") or None,
    )


def pdf_url_for(invoice: Invoice) -> str:
    """
    Direct PDF URL: the API-supplied one when present, else derived from the hosted invoice page.

    https://invoice.stripe.com/i/acct_X/live_Y?s=ap -> https://pay.stripe.com/invoice/acct_X/live_Y/pdf
    """
    if invoice.pdf_url:
        return invoice.pdf_url
    url = invoice.hosted_url.replace(HOSTED_INVOICE_PREFIX, PDF_INVOICE_PREFIX)
    url = url.split("?", 1)[0].rstrip("/")
    if not url.endswith("/pdf"):
        url += "/pdf"
    return url


class BillingApiClient:
    """
    Plain-HTTP access to the billing portal's JSON API (no browser).
    """

    def __init__(
        self,
        cfg: PortalConfig,
        *,
        session: Optional[requests.Session] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.cfg = cfg
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds

    def send_login_link(self, email: str) -> bool:
        """Ask the portal to email a fresh login link. True on any 2xx response."""
        url = f"{self.cfg.base_url}/v1/billing_portal/access_client/send_access"
        try:
            resp = self.session.post(
                url,
                params={"include_only[]": "id,client_secret"},
                headers={"Authorization": f"Bearer {self.cfg.publishable_key}"},
                data={"slug": self.cfg.pay_id, "email": email, "locale": "en"},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning("Login link API request failed: %s", e)
            return False

        if not resp.ok:
            logger.warning("Login link API request failed with status %s", resp.status_code)
            return False
        logger.info("Login link request accepted by API")
        return True

    def extract_credentials(self, login_url: str) -> Optional[Credentials]:
        try:
            resp = self.session.get(
                login_url,
                headers={"User-Agent": USER_AGENT, "Accept": "text/html,application/xhtml+xml"},
                allow_redirects=True,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning("Failed to fetch login page for credentials: %s", e)
            return None

        cookies = {c.name: c.value for c in resp.cookies if c.value is not None}
        creds = extract_login_credentials(resp.text, cookies=cookies)
        if creds is None:
            logger.info("No credentials in static HTML; page is likely rendered client-side.")
            return None

        logger.info(
            "Found session id %s and bearer token %s (%d cookies, csrf=%s)",
            creds.session_id,
            creds.masked_token(),
            len(creds.cookies),
            "yes" if creds.csrf_token else "no",
        )
        return creds

    def fetch_invoices(self, creds: Credentials) -> Optional[list[Invoice]]:
        """
        List invoices (newest first). None means "use the browser instead", never an exception.
        """
        url = f"{self.cfg.base_url}/v1/billing_portal/sessions/{creds.session_id}/invoices"
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {creds.bearer_token}",
            "Stripe-Version": self.cfg.stripe_version,
            "User-Agent": USER_AGENT,
        }
        if creds.cookies:
            headers["Cookie"] = creds.cookie_header()
        if creds.csrf_token:
            headers["X-Stripe-CSRF-Token"] = creds.csrf_token

        try:
            resp = self.session.get(url, headers=headers, timeout=self.timeout_seconds)
        except requests.RequestException as e:
            logger.warning("Invoice API request failed: %s", e)
            return None

        if not resp.ok:
            logger.warning("Invoice API request failed: %s %s", resp.status_code, resp.reason)
            return None

        try:
            payload = resp.json()
        except ValueError:
            logger.warning("Invoice API returned a non-JSON body")
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            logger.warning("Unexpected invoice API response format (missing 'data' list)")
            return None

        try:
            invoices = [normalize_invoice(rec) for rec in data]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed invoice record in API response: %r", e)
            return None

        logger.info("Fetched %d invoices from API", len(invoices))
        return invoices

    def download_pdf(self, url: str) -> bytes:
        resp = self.session.get(url, headers={"User-Agent": USER_AGENT}, timeout=self.timeout_seconds)
        resp.raise_for_status()
        return resp.content
