"""Layered ignore rules built from defaults, .gitignore and the tool ignore file."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

import pathspec

from codeask.config import ContextConfig

logger = logging.getLogger("codeask.context")


class IgnoreLayer:
    """One source of gitignore-style rules.

    Negation (``!pattern``) is honoured within the layer only.
    """

    def __init__(self, name: str, lines: list[str]) -> None:
        self.name = name
        self.spec = self._compile(name, lines)

    @staticmethod
    def _compile(name: str, lines: list[str]) -> pathspec.PathSpec:
        valid = []
        for lineno, line in enumerate(lines, start=1):
            try:
                pathspec.PathSpec.from_lines("gitignore", [line])
            except ValueError as e:
                logger.warning(f"Dropping invalid ignore pattern {line!r} ({name}:{lineno}): {e}")
                continue
            valid.append(line)
        return pathspec.PathSpec.from_lines("gitignore", valid)

    def matches(self, path: str) -> bool:
        return self.spec.match_file(path)

    def __repr__(self) -> str:
        return f"IgnoreLayer({self.name!r}, {len(self.spec.patterns)} patterns)"


class IgnoreFilter:
    """Decides whether a path relative to the project root may be visited.

    Layers are consulted in order: built-in directories, built-in files,
    ``.gitignore``, then the tool-specific ignore file. A path is excluded
    as soon as any layer matches it; a later layer can never re-include a
    path excluded by an earlier one.
    """

    def __init__(self, layers: list[IgnoreLayer]) -> None:
        self.layers = tuple(layers)

    @classmethod
    def for_root(cls, root: str | Path, config: ContextConfig | None = None) -> IgnoreFilter:
        """Build the filter for a project root. Missing ignore files are empty layers."""
        root = Path(root)
        config = config or ContextConfig()

        layers = [
            IgnoreLayer("default directories", [f"{d.rstrip('/')}/" for d in config.ignore_dirs]),
            IgnoreLayer("default files", [*config.ignore_files, config.response_file]),
        ]
        for file_name in config.ignore_file_names:
            layers.append(IgnoreLayer(file_name, _read_ignore_file(root / file_name)))
        return cls(layers)

    def is_allowed(self, relative_path: str | Path, is_dir: bool = False) -> bool:
        """Return False if any layer ignores the path.

        Paths that cannot be evaluated are treated as ignored.
        """
        try:
            path = _normalize(relative_path)
            if is_dir:
                path += "/"
            return not any(layer.matches(path) for layer in self.layers)
        except Exception as e:
            logger.warning(f"Could not evaluate ignore rules for {relative_path!r}, excluding it: {e}")
            return False


def _normalize(relative_path: str | Path) -> str:
    path = PurePosixPath(Path(relative_path).as_posix()).as_posix()
    path = path.lstrip("/")
    if not path or path == "." or path.startswith("../") or path == "..":
        raise ValueError("path is not inside the project root")
    return path


def _read_ignore_file(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return []
    except OSError as e:
        logger.warning(f"Could not read {path.name}: {e}")
        return []
