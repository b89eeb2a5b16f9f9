from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PortalSelectors:
    """
    The billing portal is a Stripe-hosted SPA; its class names are generated and change over time.
    Keep all UI selectors/text hooks here for easy maintenance.
    """

    # Login page (`/p/login/<pay_id>`): tried in order, first match wins.
    email_inputs: tuple[str, ...] = (
        "input[type='email']",
        "input[name='email']",
        "input[placeholder*='email' i]",
        "input[id*='email' i]",
    )
    # Case-insensitive substrings of a button's class/text that mark it as the submit button.
    submit_hints: tuple[str, ...] = ("submit", "continue", "login", "sign in")

    # Portal landing page
    invoice_link: str = "a[href*='invoice.stripe.com']"
    portal_root: str = "div.db-CustomerPortalRoot"
    invalid_url_markers: tuple[str, ...] = ("error", "expired")

    # Invoice row fields (inside each invoice anchor)
    row_text_span: str = "span[class*='1opxpgz']"  # date is the first, amount the second
    row_status_span: str = "span[class*='sn-6ldk2i']"
