"""codeask - ask an LLM about your project with the whole codebase as context."""

__version__ = "0.1.0"
