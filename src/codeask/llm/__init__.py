"""LLM provider abstraction and the streaming query client."""

from codeask.llm.base import LLMProvider, Message
from codeask.llm.client import QueryClient, QueryResult, build_messages
from codeask.llm.errors import ErrorKind, classify_error
from codeask.llm.factory import create_provider

__all__ = [
    "ErrorKind",
    "LLMProvider",
    "Message",
    "QueryClient",
    "QueryResult",
    "build_messages",
    "classify_error",
    "create_provider",
]
