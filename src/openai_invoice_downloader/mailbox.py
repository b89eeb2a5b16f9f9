from __future__ import annotations

import html as _html
import imaplib
import logging
import re
from email import message_from_bytes
from email.message import Message
from typing import Optional

from .config import MailboxConfig
from .util.strategies import Outcome, first_success


logger = logging.getLogger(__name__)

LOGIN_URL_RE = re.compile(r"https://pay\.openai\.com/p/session/[^\s\"'<>]+")


def _safe_imap_logout(mail: Optional[imaplib.IMAP4_SSL]) -> None:
    if mail is None:
        return
    try:
        mail.close()
    except Exception:
        pass
    try:
        mail.logout()
    except Exception:
        pass


def _imap_connect_and_select(cfg: MailboxConfig) -> imaplib.IMAP4_SSL:
    mail = imaplib.IMAP4_SSL(cfg.host, cfg.port, timeout=cfg.timeout_seconds)
    mail.login(cfg.user, cfg.app_password)
    # Read-write so fetching marks the login email as seen.
    sel_status, _ = mail.select(cfg.folder)
    if sel_status != "OK":
        raise RuntimeError(f"IMAP select failed for folder={cfg.folder!r}: {sel_status}")
    return mail


def _sender_criteria(hints: list[str]) -> list[str]:
    """
    IMAP prefix-notation OR over FROM hints: a, b, c -> OR FROM "a" OR FROM "b" FROM "c".
    """
    parts: list[str] = []
    clean = [h.strip() for h in hints if h and h.strip()]
    for i, hint in enumerate(clean):
        if i < len(clean) - 1:
            parts.append("OR")
        parts += ["FROM", f'"{hint}"']
    return parts


class MailboxWatcher:
    """
    Finds the newest unread "customer portal login link" email and returns the link in it.
    """

    def __init__(self, cfg: MailboxConfig) -> None:
        self.cfg = cfg

    def check(self) -> Optional[str]:
        logger.info("Checking mailbox %s for login link...", self.cfg.user)
        mail: Optional[imaplib.IMAP4_SSL] = None
        try:
            mail = _imap_connect_and_select(self.cfg)
            return first_success(
                [
                    ("narrowed search", lambda: self._search_and_scan(mail, narrowed=True)),
                    ("subject search", lambda: self._search_and_scan(mail, narrowed=False)),
                ],
                chain="mailbox",
            )
        except Exception as e:
            logger.error("IMAP error while checking for login link: %s", e)
            return None
        finally:
            _safe_imap_logout(mail)

    def _search_and_scan(self, mail: imaplib.IMAP4_SSL, *, narrowed: bool) -> Outcome[str]:
        criteria = ["UNSEEN", "SUBJECT", f'"{self.cfg.subject}"']
        if narrowed:
            sender = _sender_criteria(self.cfg.sender_hints)
            if not sender:
                return Outcome.next()
            criteria += sender

        status, data = mail.search(None, *criteria)
        if status != "OK":
            raise RuntimeError(f"IMAP search failed: {status} {data}")

        ids = data[0].split() if data and data[0] else []
        if not ids:
            logger.info("No login link emails found (%s)", "narrowed" if narrowed else "subject only")
            return Outcome.next()

        url = self._first_url_newest_first(mail, ids)
        # Candidates existed; a broader search would only revisit the same mail.
        return Outcome.success(url) if url else Outcome.failed()

    def _first_url_newest_first(self, mail: imaplib.IMAP4_SSL, ids: list[bytes]) -> Optional[str]:
        for msg_id in reversed(ids):
            try:
                status, msg_data = mail.fetch(msg_id, "(RFC822)")
            except Exception as e:
                logger.error("Fetch error for message %s: %s", msg_id, e)
                continue
            if status != "OK" or not msg_data or not isinstance(msg_data[0], tuple):
                continue

            msg = message_from_bytes(msg_data[0][1])
            logger.info(
                "Checking email from %r subject %r",
                (msg.get("From") or "(unknown sender)").strip(),
                (msg.get("Subject") or "(no subject)").strip(),
            )

            url = extract_login_url_from_message(msg)
            if url:
                logger.info("Found login URL in message %s", msg_id.decode(errors="replace"))
                return url
        return None


def extract_login_url(body: str) -> Optional[str]:
    m = LOGIN_URL_RE.search(body or "")
    return m.group(0) if m else None


def extract_login_url_from_message(msg: Message) -> Optional[str]:
    """
    Search the HTML body, then the HTML rendered as text, then the plain-text body.
    """
    html_body, text_body = _extract_bodies(msg)
    for candidate in (html_body, _strip_html_to_text(html_body) if html_body else "", text_body):
        url = extract_login_url(candidate)
        if url:
            return _html.unescape(url)
    return None


def _decode_part(part: Message) -> str:
    payload = part.get_payload(decode=True) or b""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def _extract_bodies(msg: Message) -> tuple[str, str]:
    html_parts: list[str] = []
    text_parts: list[str] = []
    for part in msg.walk():
        if part.is_multipart():
            continue
        disp = (part.get("Content-Disposition") or "").lower()
        if "attachment" in disp:
            continue
        ctype = part.get_content_type()
        if ctype == "text/html":
            html_parts.append(_decode_part(part))
        elif ctype == "text/plain":
            text_parts.append(_decode_part(part))
    return "\n".join(html_parts), "\n".join(text_parts)


def _strip_html_to_text(s: str) -> str:
    s = re.sub(r"(?is)<style[^>]*>.*?</style>", " ", s)
    s = re.sub(r"(?is)<script[^>]*>.*?</script>", " ", s)
    s = re.sub(r"(?is)<!--.*?-->", " ", s)
    s = re.sub(r"(?is)<[^>]+>", " ", s)
    s = _html.unescape(s)
    s = re.sub(r"\s+", " ", s).strip()
    return s
