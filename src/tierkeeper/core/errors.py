"""Domain exceptions shared by the core engines and the Discord adapter."""

from __future__ import annotations


class RoleMutationError(Exception):
    """A role add or remove call failed on the platform side."""

    def __init__(self, role_id: int, action: str, detail: str = "") -> None:
        self.role_id = role_id
        self.action = action
        message = f"{action} role {role_id} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TierTableError(ValueError):
    """The tier table file is missing or malformed."""


class QuestionBankError(ValueError):
    """The question bank cannot serve a quiz of the requested length."""
