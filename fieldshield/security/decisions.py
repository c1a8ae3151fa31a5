from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


DEFAULT_DENIAL_MESSAGE = "Not Authorised!"


class Outcome(StrEnum):
    ALLOW = "ALLOW"
    DENY = "DENY"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class Decision:
    """Result of evaluating a policy node for one field resolution.

    ``reason`` is set for denials, ``cause`` holds the exception raised by a
    predicate for errors.
    """

    outcome: Outcome
    reason: str | None = None
    cause: BaseException | None = None

    @classmethod
    def allowed(cls) -> Decision:
        return cls(outcome=Outcome.ALLOW)

    @classmethod
    def denied(cls, reason: str = DEFAULT_DENIAL_MESSAGE) -> Decision:
        return cls(outcome=Outcome.DENY, reason=reason)

    @classmethod
    def errored(cls, cause: BaseException) -> Decision:
        return cls(outcome=Outcome.ERROR, cause=cause)

    @property
    def is_allowed(self) -> bool:
        return self.outcome == Outcome.ALLOW

    @property
    def is_denied(self) -> bool:
        return self.outcome == Outcome.DENY

    @property
    def is_errored(self) -> bool:
        return self.outcome == Outcome.ERROR
