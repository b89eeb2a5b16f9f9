from __future__ import annotations

import logging

from .billing.client import BillingApiClient
from .portal.client import BillingPortalClient
from .util.strategies import Outcome, first_success


logger = logging.getLogger(__name__)


class LoginLinkRequester:
    """
    Asks the billing portal to email a fresh login link: API call first, login form second.
    """

    def __init__(self, *, api: BillingApiClient, portal: BillingPortalClient, email: str) -> None:
        self.api = api
        self.portal = portal
        self.email = email

    def request(self) -> None:
        logger.info("Requesting a new login link for %s", self.email)
        sent = first_success(
            [
                ("api", lambda: Outcome.success(True) if self.api.send_login_link(self.email) else Outcome.next()),
                (
                    "browser form",
                    lambda: Outcome.success(True) if self.portal.request_login_link(self.email) else Outcome.next(),
                ),
            ],
            chain="login link request",
        )
        if not sent:
            logger.warning("Could not request a login link (API and browser both failed)")
