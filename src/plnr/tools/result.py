"""Tool result envelope."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool call.

    Attributes:
        success: Whether the operation succeeded.
        result: Result text (success only).
        error: Error text (failure only).
    """

    success: bool
    result: str | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("successful ToolResult cannot carry an error")
        if not self.success and self.result is not None:
            raise ValueError("failed ToolResult cannot carry a result")

    @classmethod
    def ok(cls, result: str) -> ToolResult:
        return cls(success=True, result=result)

    @classmethod
    def fail(cls, error: str) -> ToolResult:
        return cls(success=False, error=error)

    def to_content(self) -> str:
        """Text placed in the tool-role transcript message."""
        if self.success:
            return self.result or "Success"
        return f"Error: {self.error}"

    def __repr__(self) -> str:
        if self.success:
            return f"ToolResult(ok, {len(self.result or '')} chars)"
        return f"ToolResult(error={self.error!r})"
