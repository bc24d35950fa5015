"""Configuration management for codeask.

Settings are resolved once at process start from four sources, highest
precedence first: environment variables, the project's
``.codeask/config.json``, the user's global ``~/.config/codeask/config.json``
and the built-in defaults. The result is an immutable :class:`Settings`
value that is passed explicitly to the assembler and the query client.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from codeask.exceptions import ConfigError

CODEASK_DIR = ".codeask"
CONFIG_FILE = "config.json"
GLOBAL_CONFIG_DIR = Path("~/.config/codeask")

# Environment variable -> dotted settings key
ENV_OVERRIDES = {
    "CODEASK_MODEL": "llm.model",
    "CODEASK_API_BASE_URL": "llm.base_url",
    "CODEASK_TEMPERATURE": "llm.temperature",
    "CODEASK_MAX_RETRIES": "llm.max_retries",
    "CODEASK_BASE_DELAY_MS": "llm.base_delay_ms",
    "CODEASK_MAX_CONTEXT_TOKENS": "context.token_ceiling",
    "CODEASK_MAX_FILE_SIZE_BYTES": "context.max_file_size_bytes",
}


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    model_config = ConfigDict(frozen=True)

    provider: str = "openai"
    model: str = "google/gemini-2.5-pro-exp-03-25:free"
    base_url: str | None = "https://openrouter.ai/api/v1"
    api_key_env: str = "OPENROUTER_API_KEY"
    temperature: float = 0.3
    max_retries: int = Field(default=5, ge=0)
    base_delay_ms: int = Field(default=1000, ge=0)

    @property
    def api_key(self) -> str | None:
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return os.environ.get("OPENAI_API_KEY")


class ContextConfig(BaseModel):
    """Context assembly configuration."""

    model_config = ConfigDict(frozen=True)

    token_ceiling: int = Field(default=900_000, gt=0)
    max_file_size_bytes: int = Field(default=1024 * 1024, gt=0)
    ignore_dirs: list[str] = Field(
        default_factory=lambda: [
            ".git",
            "node_modules",
            "dist",
            "build",
            ".next",
            "out",
            "coverage",
            "__pycache__",
            ".venv",
            "venv",
            CODEASK_DIR,
        ]
    )
    ignore_files: list[str] = Field(
        default_factory=lambda: [
            ".DS_Store",
            "Thumbs.db",
            "*.log",
            "package-lock.json",
            "yarn.lock",
            "pnpm-lock.yaml",
            "*.lock",
            ".env",
            "response.md",
        ]
    )
    include_patterns: list[str] = Field(
        default_factory=lambda: [
            r"\.ts$",
            r"\.tsx$",
            r"\.js$",
            r"\.jsx$",
            r"\.py$",
            r"\.rb$",
            r"\.php$",
            r"\.go$",
            r"\.rs$",
            r"\.java$",
            r"\.cs$",
            r"\.html$",
            r"\.css$",
            r"\.scss$",
            r"\.less$",
            r"\.json$",
            r"\.yaml$",
            r"\.yml$",
            r"\.toml$",
            r"\.md$",
            r"\.txt$",
            r"\.sql$",
            r"\.sh$",
            r"\.bash$",
            r"Dockerfile$",
            r"docker-compose\.yml$",
            r"Makefile$",
            r"Gemfile$",
            r"go\.mod$",
            r"pom\.xml$",
            r"\.csproj$",
            r"^\.?env",
            r"^\.?config",
            r"^\.\w+rc$",
        ]
    )
    ignore_file_names: list[str] = Field(
        default_factory=lambda: [".gitignore", ".codeaskignore"]
    )
    rules_file: str = ".codeaskr"
    response_file: str = "response.md"

    @property
    def tool_ignore_file(self) -> str:
        """The ignore file `codeask init` writes (the last configured one)."""
        return self.ignore_file_names[-1] if self.ignore_file_names else ".codeaskignore"


class Settings(BaseModel):
    """Full codeask configuration."""

    model_config = ConfigDict(frozen=True)

    llm: LLMConfig = Field(default_factory=LLMConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)


def get_codeask_dir(root: Path) -> Path:
    """Get the .codeask directory for a project root."""
    return root / CODEASK_DIR


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_layer(environ: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for var, key in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value is None or value == "":
            continue
        section, name = key.split(".")
        # pydantic coerces numeric strings
        layer.setdefault(section, {})[name] = value
    return layer


def load_config(
    root: Path,
    global_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Resolve settings for a project root.

    Args:
        root: Project root directory.
        global_dir: Directory holding the user-wide config.json.
            Defaults to ``~/.config/codeask``.
        environ: Environment mapping; defaults to ``os.environ``.

    Raises:
        ConfigError: If a config file is unreadable or a value is invalid.
    """
    global_dir = (global_dir or GLOBAL_CONFIG_DIR).expanduser()
    environ = os.environ if environ is None else environ

    data: dict[str, Any] = {}
    data = _deep_merge(data, _read_json(global_dir / CONFIG_FILE))
    data = _deep_merge(data, _read_json(get_codeask_dir(root) / CONFIG_FILE))
    data = _deep_merge(data, _env_layer(environ))

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_project_config(root: Path) -> dict[str, Any]:
    """Load only the project's own overrides, as stored on disk."""
    return _read_json(get_codeask_dir(root) / CONFIG_FILE)


def save_config(root: Path, data: Mapping[str, Any]) -> None:
    """Save project overrides to .codeask/config.json."""
    cs_dir = get_codeask_dir(root)
    cs_dir.mkdir(parents=True, exist_ok=True)
    config_path = cs_dir / CONFIG_FILE
    config_path.write_text(json.dumps(dict(data), indent=2), encoding="utf-8")


def get_config_value(settings: Settings, key: str) -> Any:
    """Read a nested settings value using dot notation (e.g., 'llm.model')."""
    data: Any = settings.model_dump()
    for part in key.split("."):
        if not isinstance(data, dict) or part not in data:
            raise KeyError(f"Invalid config key: {key}")
        data = data[part]
    return data


def set_config_value(overrides: Mapping[str, Any], key: str, value: Any) -> dict[str, Any]:
    """Return project overrides with a dotted key set.

    The key must exist in :class:`Settings`, and the merged result must
    validate.
    """
    parts = key.split(".")
    target: Any = Settings().model_dump()
    for part in parts:
        if not isinstance(target, dict) or part not in target:
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]

    patch: dict[str, Any] = {parts[-1]: value}
    for part in reversed(parts[:-1]):
        patch = {part: patch}
    updated = _deep_merge(dict(overrides), patch)

    try:
        Settings(**updated)
    except ValidationError as e:
        raise ConfigError(f"Invalid value for {key}: {e}") from e
    return updated
