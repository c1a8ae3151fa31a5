from __future__ import annotations

from dataclasses import dataclass

from fieldshield.security.decisions import DEFAULT_DENIAL_MESSAGE, Decision
from fieldshield.security.errors import CustomError, NotAuthorisedError


@dataclass(frozen=True, slots=True)
class ErrorPolicy:
    """Chooses the message a caller sees for a refused field.

    Denials carry their own reason. A ``CustomError`` raised by a predicate
    surfaces its message verbatim. Any other predicate failure is masked behind
    the default denial message unless ``debug`` is set.
    """

    debug: bool = False

    def message_for(self, decision: Decision) -> str:
        if decision.is_allowed:
            raise ValueError("Allowed decisions carry no error message")
        if decision.is_denied:
            return decision.reason or DEFAULT_DENIAL_MESSAGE

        cause = decision.cause
        if isinstance(cause, CustomError):
            return cause.message
        if self.debug and cause is not None:
            return str(cause) or type(cause).__name__
        return DEFAULT_DENIAL_MESSAGE

    def error_for(self, decision: Decision) -> NotAuthorisedError:
        error = NotAuthorisedError(self.message_for(decision), decision=decision)
        if decision.cause is not None:
            error.__cause__ = decision.cause
        return error
