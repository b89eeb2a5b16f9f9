from __future__ import annotations

from openai_invoice_downloader.requester import LoginLinkRequester


class FakeApi:
    def __init__(self, ok) -> None:
        self.ok = ok
        self.emails: list[str] = []

    def send_login_link(self, email: str) -> bool:
        self.emails.append(email)
        if isinstance(self.ok, Exception):
            raise self.ok
        return self.ok


class FakePortal:
    def __init__(self, ok: bool) -> None:
        self.ok = ok
        self.emails: list[str] = []

    def request_login_link(self, email: str) -> bool:
        self.emails.append(email)
        return self.ok


def test_api_success_skips_browser() -> None:
    api, portal = FakeApi(True), FakePortal(True)
    LoginLinkRequester(api=api, portal=portal, email="me@gmail.com").request()
    assert api.emails == ["me@gmail.com"]
    assert portal.emails == []


def test_api_failure_falls_back_to_browser_form() -> None:
    api, portal = FakeApi(False), FakePortal(True)
    LoginLinkRequester(api=api, portal=portal, email="me@gmail.com").request()
    assert portal.emails == ["me@gmail.com"]


def test_never_raises_when_everything_fails() -> None:
    api, portal = FakeApi(RuntimeError("boom")), FakePortal(False)
    LoginLinkRequester(api=api, portal=portal, email="me@gmail.com").request()
    assert portal.emails == ["me@gmail.com"]
