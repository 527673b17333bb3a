# =============================================================================
# apphost/exceptions.py - Composition Errors
# =============================================================================

from typing import Any


class CompositionError(Exception):
    """
    Raised when the topology is invalid or a resource fails to start.

    Composition fails fast: nothing is retried or recovered.
    """

    def __init__(
        self,
        message: str,
        code: str = "COMPOSITION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result
