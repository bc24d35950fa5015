"""Allow-list gate for file names."""

from __future__ import annotations

import re

from codeask.config import ContextConfig


class ExtensionGate:
    """Decides whether a file name is eligible for the context.

    Each pattern is a case-sensitive regular expression searched in the bare
    file name, so exact-name patterns like ``Dockerfile$`` match files that
    have no extension. Dotfiles are opt-in: a name starting with ``.`` is
    only eligible when some pattern positively matches it, regardless of the
    ignore rules.
    """

    def __init__(self, patterns: list[str]) -> None:
        self.patterns = tuple(re.compile(p) for p in patterns)

    @classmethod
    def from_config(cls, config: ContextConfig | None = None) -> ExtensionGate:
        config = config or ContextConfig()
        return cls(config.include_patterns)

    def is_eligible(self, filename: str) -> bool:
        if not filename:
            return False
        return any(p.search(filename) for p in self.patterns)
