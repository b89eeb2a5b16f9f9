from __future__ import annotations

import os
from pathlib import Path

import pytest

from openai_invoice_downloader import cli
from openai_invoice_downloader.orchestrator import RunOptions, RunResult, RunState


class FakeOrchestrator:
    def __init__(self, ok: bool) -> None:
        self.ok = ok
        self.options: list[RunOptions] = []

    def run(self, options: RunOptions) -> RunResult:
        self.options.append(options)
        state = RunState.DONE if self.ok else RunState.FAILED
        return RunResult(ok=self.ok, state=state, attempts=1, link_requests=0)


@pytest.fixture
def fake_build(monkeypatch):
    created: dict = {}

    def _factory(ok: bool):
        orch = FakeOrchestrator(ok)

        def _build(cfg, *, headless=True, slow_mo_ms=0):
            created.update(cfg=cfg, headless=headless, slow_mo_ms=slow_mo_ms)
            return orch

        monkeypatch.setattr(cli, "build_orchestrator", _build)
        return orch, created

    return _factory


def _base_args(tmp_path: Path) -> list[str]:
    return ["--env-file", str(tmp_path / "none.env"), "--config", str(tmp_path / "none.yaml")]


def test_flags_map_to_run_options(app_env, tmp_path: Path, fake_build) -> None:
    orch, created = fake_build(True)

    rc = cli.main(
        _base_args(tmp_path)
        + ["--request", "--download-dir", str(tmp_path / "out"), "--no-headless", "--all-invoices", "--list-only"]
    )

    assert rc == 0
    (opts,) = orch.options
    assert opts == RunOptions(
        force_request=True,
        download_dir=str(tmp_path / "out"),
        all_invoices=True,
        list_only=True,
    )
    assert created["headless"] is False


def test_defaults(app_env, tmp_path: Path, fake_build) -> None:
    orch, created = fake_build(True)

    assert cli.main(_base_args(tmp_path)) == 0
    (opts,) = orch.options
    assert opts == RunOptions(force_request=False, download_dir="invoices", all_invoices=False, list_only=False)
    assert created["headless"] is True
    assert created["cfg"].notify.filename_name == "JaneDoe"


def test_exhausted_attempts_exit_nonzero(app_env, tmp_path: Path, fake_build) -> None:
    fake_build(False)
    assert cli.main(_base_args(tmp_path)) == 1


def test_invalid_config_exit_code(clean_env, tmp_path: Path, fake_build) -> None:
    clean_env.setenv("LOG_FILE", str(tmp_path / "log.txt"))
    orch, _ = fake_build(True)
    assert cli.main(_base_args(tmp_path)) == 2
    assert orch.options == []


def test_env_file_is_loaded(clean_env, tmp_path: Path, fake_build) -> None:
    # load_dotenv writes straight into os.environ; keep it from leaking into other tests.
    clean_env.setattr(os, "environ", dict(os.environ))
    env_file = tmp_path / "test.env"
    env_file.write_text(
        "\n".join(
            [
                "MAILBOX_USER=me@gmail.com",
                "MAILBOX_APP_PASSWORD=app-pass",
                "RECIPIENT_EMAIL=books@example.com",
                "INVOICE_FILENAME_NAME=FromEnvFile",
                "OPENAI_PAY_ID=cus_portal123",
                f"LOG_FILE={tmp_path / 'log.txt'}",
            ]
        ),
        encoding="utf-8",
    )
    _, created = fake_build(True)

    rc = cli.main(["--env-file", str(env_file), "--config", str(tmp_path / "none.yaml")])

    assert rc == 0
    assert created["cfg"].notify.filename_name == "FromEnvFile"
