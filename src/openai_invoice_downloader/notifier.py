from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Union

from .config import NotifyConfig, SmtpConfig


logger = logging.getLogger(__name__)


class EmailNotifier:
    """
    Emails a downloaded invoice PDF to the configured recipient over SSL (port 465) or STARTTLS.
    """

    def __init__(self, smtp: SmtpConfig, notify: NotifyConfig) -> None:
        self.smtp = smtp
        self.notify = notify

    def build_message(self, file_path: Path, invoice_date: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = f"ChatGPT Invoice for {self.notify.display_name} {invoice_date}"
        msg["From"] = self.smtp.user
        msg["To"] = self.notify.recipient
        msg.set_content(
            f"Please find attached the ChatGPT invoice for {invoice_date}.\n\n"
            "This email was automatically generated.\n"
        )
        msg.add_attachment(
            file_path.read_bytes(), maintype="application", subtype="pdf", filename=file_path.name
        )
        return msg

    def send_invoice_email(self, file_path: Union[str, Path], invoice_date: str) -> bool:
        logger.info("Preparing to send invoice email for %s...", invoice_date)
        try:
            msg = self.build_message(Path(file_path), invoice_date)

            host, port, timeout = self.smtp.host, self.smtp.port, self.smtp.timeout_seconds
            use_ssl = port == 465
            if use_ssl:
                logger.debug("Connecting to SMTP server %s:%s over SSL", host, port)
                server = smtplib.SMTP_SSL(host, port, timeout=timeout)
            else:
                logger.debug("Connecting to SMTP server %s:%s with STARTTLS", host, port)
                server = smtplib.SMTP(host, port, timeout=timeout)

            try:
                if not use_ssl:
                    server.ehlo()
                    server.starttls()
                server.login(self.smtp.user, self.smtp.password)
                server.send_message(msg)
            finally:
                try:
                    server.quit()
                except Exception:
                    logger.debug("SMTP quit failed; closing the connection.", exc_info=True)
                    server.close()
        except Exception as e:
            logger.error("Error sending invoice email: %s", e)
            return False

        logger.info("Invoice email sent successfully to %s", self.notify.recipient)
        return True
