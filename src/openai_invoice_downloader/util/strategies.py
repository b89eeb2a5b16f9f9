from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Sequence, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class OutcomeKind(str, enum.Enum):
    SUCCESS = "success"
    # Soft failure: this strategy ran and the answer is "nothing"; later strategies would not help.
    FAILED = "failed"
    # This strategy could not answer; try the next one.
    NEXT = "next"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    kind: OutcomeKind
    value: Optional[T] = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(OutcomeKind.SUCCESS, value)

    @classmethod
    def failed(cls) -> "Outcome[T]":
        return cls(OutcomeKind.FAILED)

    @classmethod
    def next(cls) -> "Outcome[T]":
        return cls(OutcomeKind.NEXT)

    @classmethod
    def from_optional(cls, value: Optional[T]) -> "Outcome[T]":
        """`None` means "try the next strategy"."""
        return cls.next() if value is None else cls.success(value)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


Strategy = tuple[str, Callable[[], Outcome[T]]]


def first_success(strategies: Sequence[Strategy], *, chain: str = "fallback") -> Optional[T]:
    """
    Evaluate named strategies left-to-right and return the first successful value.

    A strategy that raises is logged and treated as NEXT. FAILED stops the chain.
    """
    for name, fn in strategies:
        try:
            outcome = fn()
        except Exception:
            logger.warning("%s strategy %r raised; trying next.", chain, name, exc_info=True)
            continue

        if outcome.kind is OutcomeKind.SUCCESS:
            logger.debug("%s strategy %r succeeded.", chain, name)
            return outcome.value
        if outcome.kind is OutcomeKind.FAILED:
            logger.info("%s strategy %r found nothing; stopping.", chain, name)
            return None
        logger.debug("%s strategy %r deferred to next.", chain, name)

    return None
