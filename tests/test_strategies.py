from __future__ import annotations

from openai_invoice_downloader.util.strategies import Outcome, OutcomeKind, first_success


def test_first_success_returns_first_value_and_stops() -> None:
    called: list[str] = []

    def s(name: str, outcome: Outcome):
        def _run():
            called.append(name)
            return outcome

        return name, _run

    value = first_success([s("a", Outcome.next()), s("b", Outcome.success(2)), s("c", Outcome.success(3))])
    assert value == 2
    assert called == ["a", "b"]


def test_failed_stops_chain() -> None:
    called: list[str] = []

    def later():
        called.append("later")
        return Outcome.success("x")

    assert first_success([("a", Outcome.failed), ("b", later)]) is None
    assert called == []


def test_raising_strategy_is_treated_as_next() -> None:
    def boom():
        raise RuntimeError("nope")

    assert first_success([("boom", boom), ("ok", lambda: Outcome.success("ok"))]) == "ok"


def test_exhausted_chain_returns_none() -> None:
    assert first_success([]) is None
    assert first_success([("a", Outcome.next)]) is None


def test_from_optional() -> None:
    assert Outcome.from_optional(None).kind is OutcomeKind.NEXT
    assert Outcome.from_optional(0).ok
    assert Outcome.from_optional([]).value == []
