from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence, Union

from .billing.client import pdf_url_for
from .models import Invoice
from .util.dates import format_invoice_date


logger = logging.getLogger(__name__)


class InvoiceNotifier(Protocol):
    def send_invoice_email(self, file_path: Union[str, Path], invoice_date: str) -> bool: ...


def invoice_filename(invoice: Invoice, filename_name: str) -> str:
    # Unrecognized dates are kept literally; never let them escape the target directory.
    date_part = format_invoice_date(invoice.date).replace("/", "-").replace("\\", "-")
    return f"OpenAI_{date_part}_{filename_name}.pdf"


class InvoiceDownloader:
    """
    Saves invoice PDFs as `OpenAI_<YYYY-MM-DD>_<name>.pdf` and emails each newly saved file.

    A file that already exists is the only record of a previous download; it is never refetched.
    """

    def __init__(
        self,
        *,
        filename_name: str,
        fetch_pdf: Callable[[str], bytes],
        notifier: Optional[InvoiceNotifier] = None,
        delay_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.filename_name = filename_name
        self.fetch_pdf = fetch_pdf
        self.notifier = notifier
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def download_invoices(
        self,
        invoices: Sequence[Invoice],
        target_dir: Union[str, Path],
        only_most_recent: bool = True,
    ) -> int:
        """
        Returns how many of the selected invoices are on disk afterwards (new or already present).
        """
        if not invoices:
            logger.info("No invoices to download")
            return 0

        out_dir = Path(target_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        selected = list(invoices[:1]) if only_most_recent else list(invoices)
        if only_most_recent:
            logger.info("Download mode: most recent invoice only (%s)", selected[0].summary())
        else:
            logger.info("Download mode: all invoices")
        logger.info("Starting download of %d invoice(s) to %s", len(selected), out_dir)

        ok = 0
        for idx, invoice in enumerate(selected, start=1):
            logger.info("Downloading invoice %d/%d: %s", idx, len(selected), invoice.summary())
            try:
                if self._download_one(invoice, out_dir):
                    ok += 1
            except Exception as e:
                logger.error("Error downloading invoice %d (%s): %s", idx, invoice.id, e)

        logger.info("Download complete: %d/%d invoices downloaded", ok, len(selected))
        return ok

    def _download_one(self, invoice: Invoice, out_dir: Path) -> bool:
        filename = invoice_filename(invoice, self.filename_name)
        path = out_dir / filename
        if path.exists():
            logger.info("Invoice already exists: %s", filename)
            return True

        url = pdf_url_for(invoice)
        # A half-written file would be mistaken for a finished download next run.
        partial = path.with_name(path.name + ".part")
        logger.debug("Fetching PDF from %s", url)
        try:
            try:
                content = self.fetch_pdf(url)
                partial.write_bytes(content)
                partial.replace(path)
            except Exception as e:
                logger.error("Failed to download PDF %s: %s", filename, e)
                partial.unlink(missing_ok=True)
                return False

            logger.info("Invoice downloaded successfully: %s", filename)
            if self.notifier is not None:
                self.notifier.send_invoice_email(path, invoice.date)
            return True
        finally:
            # Spacing between PDF requests keeps Stripe from rate limiting us.
            self._sleep(self.delay_seconds)
