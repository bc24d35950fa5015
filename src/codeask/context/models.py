"""Data models for budgeted context assembly."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field

from codeask.exceptions import BudgetExceededError


class FileRecord(BaseModel):
    """A single file admitted into the context."""

    model_config = ConfigDict(frozen=True)

    path: str  # POSIX-style, relative to the traversal root
    content: str
    line_count: int = Field(ge=0)
    size_bytes: int = Field(ge=0)
    estimated_tokens: int = Field(ge=0)


class RulesDocument(BaseModel):
    """Free-text instructions from the project's rules file."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    text: str


class WalkResult(BaseModel):
    """Outcome of one traversal.

    On a budget abort ``files`` is empty and ``budget_error`` describes the
    unit that could not be added; partial results are never returned.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    files: list[FileRecord] = Field(default_factory=list)
    total_size_bytes: int = 0
    total_estimated_tokens: int = 0
    budget_error: BudgetExceededError | None = None

    @property
    def ok(self) -> bool:
        return self.budget_error is None


class ContextResult(BaseModel):
    """Assembled context ready to be sent to the LLM, or the reason it is not."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    context: str = ""
    files: list[FileRecord] = Field(default_factory=list)
    rules: RulesDocument | None = None
    total_size_bytes: int = 0
    total_estimated_tokens: int = 0
    error_kind: str = ""  # "budget_exceeded" or ""
    error: str = ""

    @property
    def file_count(self) -> int:
        return len(self.files)


class TokenEstimator:
    """Estimate token counts from character length."""

    # Rough heuristic: 1 token ≈ 4 characters for code
    CHARS_PER_TOKEN = 4

    @classmethod
    def estimate(cls, text: str) -> int:
        """Estimate token count for a string, rounding up."""
        return math.ceil(len(text) / cls.CHARS_PER_TOKEN)
