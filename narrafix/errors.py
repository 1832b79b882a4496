"""Domain exceptions for message-formatting pipeline and CLI diagnostics."""

from __future__ import annotations


class FormatStageError(RuntimeError):
    """Raised when a specific message-formatting stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped formatting error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint
