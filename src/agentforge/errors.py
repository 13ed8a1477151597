from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_CONFIG = "INVALID_CONFIG"
    GENERATION_FAILED = "GENERATION_FAILED"
    GENERATION_TIMEOUT = "GENERATION_TIMEOUT"
    SYSTEMIC_FAILURE = "SYSTEMIC_FAILURE"


class AgentForgeError(Exception):
    """Raised for all expected failure conditions.

    Input and configuration errors surface immediately. Per-item generation
    failures are captured by the dispatcher in collecting mode and only
    propagate as exceptions in strict mode. Cache faults never reach this
    class: the cache layer degrades them to a miss or a no-op.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
