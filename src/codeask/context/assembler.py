"""Gather a project's context: filter, walk, budget and serialize."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from codeask.config import ContextConfig
from codeask.context.extensions import ExtensionGate
from codeask.context.ignore import IgnoreFilter
from codeask.context.models import ContextResult, RulesDocument
from codeask.context.serializer import ContextSerializer, format_bytes
from codeask.context.walker import TreeWalker

logger = logging.getLogger("codeask.context")


def load_rules(root: Path, config: ContextConfig) -> RulesDocument | None:
    """Read the rules file at the project root, if there is one."""
    path = root / config.rules_file
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning(f"Could not read {config.rules_file}: {e}")
        return None
    if not text:
        return None
    return RulesDocument(file_name=config.rules_file, text=text)


def gather_context(
    root: str | Path,
    config: ContextConfig | None = None,
    timestamp: datetime | None = None,
) -> ContextResult:
    """Assemble the context document for ``root``.

    Returns:
        A successful ContextResult with the rendered document, or one with
        ``success=False`` and ``error_kind="budget_exceeded"`` when the
        project does not fit the token ceiling. No partial document is
        produced in that case.
    """
    root = Path(root).resolve()
    config = config or ContextConfig()

    rules = load_rules(root, config)
    if rules is None:
        logger.info(f"No {config.rules_file} found, proceeding without custom rules.")

    walker = TreeWalker(
        IgnoreFilter.for_root(root, config),
        ExtensionGate.from_config(config),
        config,
    )
    logger.info(f"Starting context scan from root: {root}")
    logger.info(f"Max context limit set to approximately {config.token_ceiling} tokens.")
    walk = walker.walk(root, rules=rules, root_label=str(root))

    if not walk.ok:
        return ContextResult(
            success=False,
            rules=rules,
            total_estimated_tokens=walk.total_estimated_tokens,
            error_kind="budget_exceeded",
            error=str(walk.budget_error),
        )

    context = ContextSerializer().serialize(walk.files, str(root), rules, timestamp)
    logger.info(
        f"Context gathered: {len(walk.files)} files, "
        f"{format_bytes(walk.total_size_bytes)}, ~{walk.total_estimated_tokens} tokens."
    )
    return ContextResult(
        context=context,
        files=walk.files,
        rules=rules,
        total_size_bytes=walk.total_size_bytes,
        total_estimated_tokens=walk.total_estimated_tokens,
    )
