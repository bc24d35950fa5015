"""Budgeted project context assembly.

Usage:
    from codeask.context import gather_context

    result = gather_context(root, settings.context)
    if result.success:
        print(result.context)
"""

from codeask.context.assembler import gather_context
from codeask.context.extensions import ExtensionGate
from codeask.context.ignore import IgnoreFilter
from codeask.context.models import ContextResult, FileRecord, RulesDocument, WalkResult
from codeask.context.serializer import ContextSerializer
from codeask.context.walker import TreeWalker

__all__ = [
    "ContextResult",
    "ContextSerializer",
    "ExtensionGate",
    "FileRecord",
    "IgnoreFilter",
    "RulesDocument",
    "TreeWalker",
    "WalkResult",
    "gather_context",
]
