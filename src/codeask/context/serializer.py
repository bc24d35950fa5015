"""Render collected files into the project context document.

The document is line-oriented with stable markers::

    [START PROJECT CONTEXT]
    Root Directory: ...
    ...
    [START FILES]
    [START FILE] ... [END FILE]     (one per file, sorted by path)
    [END FILES]
    ---                             (only with a rules document)
    [START RULES] ... [END RULES]
    [END PROJECT CONTEXT]

The boilerplate estimates used by the walker's budget accounting come from
the same templates, so the header's token total always matches what the
walker charged.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import PurePosixPath

from codeask.context.models import FileRecord, RulesDocument, TokenEstimator

SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")

# Same width as datetime.isoformat() with microseconds and a UTC offset
TIMESTAMP_PLACEHOLDER = "0000-00-00T00:00:00.000000+00:00"
COUNT_PLACEHOLDER = "XXXXX"


def format_bytes(num_bytes: int, decimals: int = 2) -> str:
    """Format a byte count with 1024-based units, e.g. ``1.5 KB``.

    Sizes beyond the largest unit are still expressed in that unit.
    """
    if num_bytes <= 0:
        return "0 Bytes"
    decimals = max(decimals, 0)
    index = 0
    while index < len(SIZE_UNITS) - 1 and num_bytes >= 1024 ** (index + 1):
        index += 1
    value = f"{num_bytes / 1024 ** index:.{decimals}f}"
    if "." in value:
        value = value.rstrip("0").rstrip(".")
    return f"{value} {SIZE_UNITS[index]}"


def language_hint(path: str) -> str:
    """Fence language tag for a file: its extension without the dot."""
    return PurePosixPath(path).suffix.lstrip(".")


def render_file_block(path: str, line_count: int, size_bytes: int, content: str) -> str:
    return (
        "[START FILE]\n"
        f"File: {path}\n"
        f"Lines: {line_count}\n"
        f"Size: {format_bytes(size_bytes)}\n"
        "Content:\n"
        f"```{language_hint(path)}\n"
        f"{content}\n"
        "```\n"
        "[END FILE]"
    )


def render_rules_block(rules: RulesDocument) -> str:
    return (
        "[START RULES]\n"
        f"File: {rules.file_name}\n"
        "Content:\n"
        "```\n"
        f"{rules.text}\n"
        "```\n"
        "[END RULES]"
    )


def _render(
    blocks_for_files: list[str],
    root_label: str,
    file_count: str,
    total_size: str,
    total_tokens: str,
    timestamp: str,
    rules: RulesDocument | None,
) -> str:
    blocks = [
        "[START PROJECT CONTEXT]",
        f"Root Directory: {root_label}",
        f"Total Files Included: {file_count}",
        f"Total Size Included: {total_size}",
        f"Total Estimated Tokens: {total_tokens}",
        f"Timestamp: {timestamp}",
        "---",
        "[START FILES]",
        *blocks_for_files,
        "[END FILES]",
    ]
    if rules is not None:
        blocks.append("---")
        blocks.append(render_rules_block(rules))
    blocks.append("[END PROJECT CONTEXT]")
    return "\n\n".join(blocks)


def header_tokens(root_label: str, rules: RulesDocument | None = None) -> int:
    """Estimated tokens of the document without any file blocks.

    Includes the rules document itself when one is given.
    """
    skeleton = _render(
        [],
        root_label,
        COUNT_PLACEHOLDER,
        COUNT_PLACEHOLDER,
        COUNT_PLACEHOLDER,
        TIMESTAMP_PLACEHOLDER,
        rules,
    )
    return TokenEstimator.estimate(skeleton)


def file_boilerplate_tokens(path: str, line_count: int, size_bytes: int) -> int:
    """Estimated tokens of the markers wrapping one file's content."""
    return TokenEstimator.estimate(render_file_block(path, line_count, size_bytes, ""))


def file_cost(record: FileRecord) -> int:
    """Tokens charged against the budget for including ``record``."""
    return record.estimated_tokens + file_boilerplate_tokens(
        record.path, record.line_count, record.size_bytes
    )


def total_tokens(records: Sequence[FileRecord], root_label: str, rules: RulesDocument | None = None) -> int:
    return header_tokens(root_label, rules) + sum(file_cost(r) for r in records)


class ContextSerializer:
    """Pure rendering of file records into the context document."""

    def serialize(
        self,
        records: Sequence[FileRecord],
        root_label: str,
        rules: RulesDocument | None = None,
        timestamp: datetime | None = None,
    ) -> str:
        """Render the document.

        Args:
            records: Files in the order they should appear (the walker
                hands them over sorted by path).
            root_label: Shown as the root directory.
            rules: Optional rules document, rendered in a trailing block.
            timestamp: Generation time; defaults to now (UTC).
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        return _render(
            [render_file_block(r.path, r.line_count, r.size_bytes, r.content) for r in records],
            root_label,
            str(len(records)),
            format_bytes(sum(r.size_bytes for r in records)),
            str(total_tokens(records, root_label, rules)),
            timestamp.isoformat(),
            rules,
        )
