"""
Custom exceptions for snapguard derivation passes.
"""

from __future__ import annotations


class DerivationError(Exception):
    """
    Raised when a derivation pass cannot run at all.

    Attributes:
        label: Which pass failed (e.g. ``"transition"`` or ``"recompute"``)
        paths: Snapshot paths involved in the failure
    """

    def __init__(
        self,
        label: str,
        message: str,
        paths: list[str] | None = None,
    ):
        self.label = label
        self.paths = paths or []
        super().__init__(self._fmt(message))

    def _fmt(self, msg: str) -> str:
        """Format the error message with additional context."""
        suffix = ""
        if self.paths:
            preview = ", ".join(self.paths[:10])
            more = f" (+{len(self.paths)-10} more)" if len(self.paths) > 10 else ""
            suffix = f" | paths: [{preview}]{more}"
        return f"[Derivation {self.label}] {msg}{suffix}"
