from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class Credentials:
    """
    Billing-portal session credentials scraped from a login link's landing page.

    Short-lived and single-use; never written to disk.
    """

    session_id: str
    bearer_token: str = field(repr=False)
    cookies: dict[str, str] = field(default_factory=dict, repr=False)
    csrf_token: Optional[str] = field(default=None, repr=False)

    def cookie_header(self) -> str:
        return "; ".join(f"{k}={v}" for k, v in self.cookies.items())

    def masked_token(self) -> str:
        return f"{self.bearer_token[:20]}..."


class Invoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    hosted_url: str
    pdf_url: Optional[str] = None
    # Human-readable, e.g. "Mar 15, 2024" (API) or whatever the portal renders (scrape).
    date: str
    amount: str
    status: str
    description: str = "Unknown description"
    number: Optional[str] = None

    def summary(self) -> str:
        return f"{self.date} - {self.amount} - {self.status}"
