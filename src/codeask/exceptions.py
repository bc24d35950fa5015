"""Custom exceptions for codeask."""


class CodeAskError(Exception):
    """Base exception for all codeask errors."""


class ConfigError(CodeAskError):
    """Configuration-related errors."""


class ContextError(CodeAskError):
    """Context assembly errors."""


class BudgetExceededError(ContextError):
    """The next unit of context would push the estimate past the token ceiling.

    Attributes:
        limit: The configured token ceiling.
        current: Estimated tokens committed before the rejected unit.
        path: The file (or rules document) that could not be added.
        unit_tokens: Estimated cost of the rejected unit.
    """

    def __init__(self, limit: int, current: int, path: str, unit_tokens: int):
        self.limit = limit
        self.current = current
        self.path = path
        self.unit_tokens = unit_tokens
        super().__init__(
            f"Context limit ({limit} tokens) exceeded while adding {path}. "
            f"Current estimated tokens: {current}. "
            f"Additional estimated tokens: {unit_tokens}."
        )


class LLMError(CodeAskError):
    """LLM provider errors."""

