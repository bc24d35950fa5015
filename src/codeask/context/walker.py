"""Budget-aware traversal of a project tree."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from codeask.config import ContextConfig
from codeask.context.extensions import ExtensionGate
from codeask.context.ignore import IgnoreFilter
from codeask.context.models import FileRecord, RulesDocument, TokenEstimator, WalkResult
from codeask.context.serializer import (
    file_boilerplate_tokens,
    format_bytes,
    header_tokens,
)
from codeask.exceptions import BudgetExceededError

logger = logging.getLogger("codeask.context")


@dataclass
class BudgetState:
    """Running totals for one traversal. Only ever grows."""

    token_ceiling: int
    total_size_bytes: int = 0
    total_estimated_tokens: int = 0
    error: BudgetExceededError | None = None

    def try_commit(self, label: str, tokens: int, size_bytes: int = 0) -> bool:
        """Charge ``tokens`` unless that would cross the ceiling.

        On refusal the totals are left untouched and ``error`` is set.
        """
        if self.total_estimated_tokens + tokens > self.token_ceiling:
            self.error = BudgetExceededError(
                limit=self.token_ceiling,
                current=self.total_estimated_tokens,
                path=label,
                unit_tokens=tokens,
            )
            return False
        self.total_estimated_tokens += tokens
        self.total_size_bytes += size_bytes
        return True


@dataclass
class _Walk:
    root: Path
    budget: BudgetState
    files: list[FileRecord] = field(default_factory=list)


class TreeWalker:
    """Depth-first walk that admits files until the token budget runs out.

    Files are read one at a time and fully accounted before the next entry
    is visited. When a file would push the estimate past the ceiling the
    walk stops immediately and nothing collected so far is returned.
    """

    def __init__(
        self,
        ignore_filter: IgnoreFilter,
        extension_gate: ExtensionGate,
        config: ContextConfig | None = None,
    ) -> None:
        self.ignore_filter = ignore_filter
        self.extension_gate = extension_gate
        self.config = config or ContextConfig()

    def walk(
        self,
        root: str | Path,
        rules: RulesDocument | None = None,
        root_label: str | None = None,
    ) -> WalkResult:
        """Collect eligible files under ``root``.

        Args:
            root: Directory to traverse.
            rules: Rules document; its cost is charged before any file.
            root_label: Label rendered as the root directory in the
                document header. Defaults to the resolved root path.

        Returns:
            A WalkResult with records sorted by relative path, or with
            ``budget_error`` set and no records.
        """
        root = Path(root).resolve()
        root_label = root_label or str(root)
        budget = BudgetState(token_ceiling=self.config.token_ceiling)

        label = rules.file_name if rules is not None else "project context header"
        if not budget.try_commit(label, header_tokens(root_label, rules)):
            return self._aborted(budget)

        state = _Walk(root=root, budget=budget)
        if not self._walk_dir(state, root):
            return self._aborted(budget)

        return WalkResult(
            files=sorted(state.files, key=lambda r: r.path),
            total_size_bytes=budget.total_size_bytes,
            total_estimated_tokens=budget.total_estimated_tokens,
        )

    @staticmethod
    def _aborted(budget: BudgetState) -> WalkResult:
        logger.error(str(budget.error))
        return WalkResult(
            total_size_bytes=budget.total_size_bytes,
            total_estimated_tokens=budget.total_estimated_tokens,
            budget_error=budget.error,
        )

    def _walk_dir(self, state: _Walk, directory: Path) -> bool:
        """Visit one directory. Returns False if the budget was exceeded."""
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning(f"Skipping directory {directory}: {e}")
            return True

        for entry in entries:
            rel_path = Path(entry.path).relative_to(state.root).as_posix()
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError as e:
                logger.warning(f"Skipping {rel_path}: {e}")
                continue

            if not self.ignore_filter.is_allowed(rel_path, is_dir=is_dir):
                logger.debug(f"Ignoring path: {rel_path}")
                continue

            if is_dir:
                if not self._walk_dir(state, Path(entry.path)):
                    return False
            elif is_file:
                if not self._visit_file(state, Path(entry.path), rel_path):
                    return False
        return True

    def _visit_file(self, state: _Walk, path: Path, rel_path: str) -> bool:
        if not self.extension_gate.is_eligible(path.name):
            return True

        try:
            size = path.stat().st_size
            if size > self.config.max_file_size_bytes:
                logger.warning(
                    f"Skipping {rel_path}: File size ({format_bytes(size)}) exceeds limit "
                    f"({format_bytes(self.config.max_file_size_bytes)})"
                )
                return True
            if size == 0:
                return True
            content = path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            logger.debug(f"File vanished before it could be read: {rel_path}")
            return True
        except OSError as e:
            logger.warning(f"Error processing file {rel_path}: {e}")
            return True

        line_count = content.count("\n") + 1
        estimated = TokenEstimator.estimate(content)
        cost = estimated + file_boilerplate_tokens(rel_path, line_count, size)
        if not state.budget.try_commit(rel_path, cost, size):
            return False

        state.files.append(
            FileRecord(
                path=rel_path,
                content=content,
                line_count=line_count,
                size_bytes=size,
                estimated_tokens=estimated,
            )
        )
        return True
