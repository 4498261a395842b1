"""Domain exceptions for command-layer diagnostics."""

from __future__ import annotations


class CommandError(RuntimeError):
    """Raised when a command cannot be validated or its external tool fails."""

    def __init__(
        self,
        detail: str,
        *,
        command: str = "",
        hint: str | None = None,
    ) -> None:
        """Initialize a command-scoped error."""

        super().__init__(detail)
        self.command = command
        self.detail = detail
        self.hint = hint
