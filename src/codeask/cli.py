"""Command-line interface for codeask."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from codeask import __version__
from codeask.config import (
    Settings,
    get_config_value,
    load_config,
    load_project_config,
    save_config,
    set_config_value,
)
from codeask.exceptions import CodeAskError, ConfigError
from codeask.ui.console import Console

console = Console()

DEFAULT_IGNORE_FILE = """# codeask ignore file
# Add files/directories to leave out of the context sent to the LLM.
# Syntax is the same as .gitignore

# Example: large data files or build artifacts not caught by .gitignore
# data/
# *.log
# temp/

# The response file itself
{response_file}
"""

DEFAULT_RULES_FILE = """[START SYSTEM PROMPT]
You are an expert software engineer. You are helping a user with their codebase.
The user has provided their entire project context below.
Analyze the code and the user's request carefully.
Provide concise, accurate, and actionable responses.
If generating code, ensure it matches the project's style and conventions.
If the request is unclear, ask clarifying questions.
Output the response in Markdown format. For code blocks, specify the language.
[END SYSTEM PROMPT]

[START INSTRUCTIONS]
- Keep code simple, modular and small (e.g., <500 lines/file if possible).
- Focus on minimum viable functionality.
- If refactoring is needed (e.g., splitting large files), provide clear instructions and the refactored code.
- Return full code for modified or new files in separate Markdown code blocks like the example below.
[END INSTRUCTIONS]

[EXAMPLE OUTPUT FILE]
--- ./path/to/your/file.py ---
```python
# Full content of the file here
```
[END EXAMPLE OUTPUT FILE]
"""


class _DefaultAskGroup(click.Group):
    """Treat a bare prompt (``codeask "why?"``) as ``codeask ask "why?"``."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        if args and args[0] not in self.commands and not args[0].startswith("-"):
            args = ["ask", *args]
        return super().parse_args(ctx, args)


def _setup_logging(verbose: bool) -> None:
    root_logger = logging.getLogger("codeask")
    root_logger.handlers = [console.log_handler(verbose)]
    root_logger.setLevel(logging.DEBUG)


def _get_project_root(path: str | None = None) -> Path:
    """Resolve the project root or error."""
    root = Path(path or ".").resolve()
    if not root.is_dir():
        console.error(f"Path does not exist: {path}")
        sys.exit(1)
    return root


def _load_settings(root: Path) -> Settings:
    load_dotenv(root / ".env", override=False)
    try:
        return load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)


def _gather(root: Path, settings: Settings):
    from codeask.context import gather_context

    result = gather_context(root, settings.context)
    if not result.success:
        console.show_diagnosis(
            "Context too large",
            f"{result.error}\n\n"
            "Consider excluding more files/directories using .gitignore or "
            f"{settings.context.tool_ignore_file}, or simplifying your project.",
        )
        sys.exit(1)
    if result.file_count == 0:
        console.warning(
            "No files were included in the context. "
            "Check your include patterns and ignore files."
        )
    return result


@click.group(cls=_DefaultAskGroup)
@click.version_option(version=__version__, prog_name="codeask")
def main():
    """codeask - ask an LLM questions with your entire codebase as context."""
    pass


@main.command()
@click.argument("prompt")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def ask(prompt: str, path: str | None, verbose: bool):
    """Ask the LLM a question using the project's context."""
    from codeask.llm.client import QueryClient
    from codeask.llm.errors import ErrorKind
    from codeask.llm.factory import create_provider

    _setup_logging(verbose)
    root = _get_project_root(path)
    settings = _load_settings(root)
    llm_config = settings.llm

    console.banner()
    result = _gather(root, settings)
    console.show_context_summary(result, settings.context.token_ceiling)

    if not llm_config.api_key and llm_config.provider not in ("local",):
        console.error(
            f"No API key found. Set the {llm_config.api_key_env} environment variable "
            "or add it to a .env file in your project root."
        )
        sys.exit(1)

    try:
        provider = create_provider(llm_config)
    except CodeAskError as e:
        console.error(str(e))
        sys.exit(1)

    max_attempts = llm_config.max_retries + 1

    def on_retry(attempt: int, delay_ms: int, kind: ErrorKind, diagnosis: str):
        console.show_retry(attempt, max_attempts, delay_ms, diagnosis)

    client = QueryClient(
        provider,
        llm_config,
        root / settings.context.response_file,
        sink=console.stream_chunk,
        on_retry=on_retry,
    )

    console.info(f"Sending request to model '{llm_config.model}' via {llm_config.base_url}")
    console.console.print()
    rules_text = result.rules.text if result.rules else None
    outcome = asyncio.run(client.query(result.context, prompt, rules_text))
    console.console.print()

    if not outcome.success:
        title = (
            f"Failed after {outcome.attempts} attempts"
            if outcome.exhausted
            else f"LLM API error ({outcome.error_kind.value})"
        )
        console.show_diagnosis(title, outcome.diagnosis)
        sys.exit(1)

    console.success(f"Response stream complete after {outcome.attempts} attempt(s).")
    console.info(f"Full response saved to {outcome.response_path}")


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--output", "-o", default=None, help="Write the context to a file instead of stdout.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def context(path: str | None, output: str | None, verbose: bool):
    """Gather context and print it (what the LLM sees)."""
    _setup_logging(verbose)
    root = _get_project_root(path)
    settings = _load_settings(root)
    result = _gather(root, settings)

    if output:
        Path(output).write_text(result.context, encoding="utf-8")
        console.success(
            f"Context written to {output} ({result.file_count} files, "
            f"~{result.total_estimated_tokens:,} tokens)"
        )
    elif result.file_count:
        console.raw(result.context)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
def init(path: str | None):
    """Create default ignore and rules files in the project root."""
    root = _get_project_root(path)
    settings = _load_settings(root)
    ctx_config = settings.context

    ignore_name = ctx_config.tool_ignore_file
    targets = [
        (root / ignore_name, DEFAULT_IGNORE_FILE.format(response_file=ctx_config.response_file)),
        (root / ctx_config.rules_file, DEFAULT_RULES_FILE),
    ]
    for target, content in targets:
        if target.exists():
            console.info(f"{target.name} already exists, skipping.")
            continue
        try:
            target.write_text(content, encoding="utf-8")
        except OSError as e:
            console.error(f"Error initializing {target.name}: {e}")
            sys.exit(1)
        console.success(f"Created default {target.name}")

    console.info(f"Edit {ignore_name} to exclude more files/folders from the context.")
    console.info(f"Edit {ctx_config.rules_file} to give the LLM custom instructions.")


@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage codeask configuration."""
    root = _get_project_root(path)
    settings = _load_settings(root)

    if action == "show":
        console.console.print_json(json.dumps(settings.model_dump(), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: codeask config get <key>")
            sys.exit(1)
        try:
            data = get_config_value(settings, key)
        except KeyError:
            console.error(f"Unknown key: {key}")
            sys.exit(1)
        console.console.print(f"{key} = {data}", markup=False, highlight=False)
    elif action == "set":
        if not key or value is None:
            console.error("Usage: codeask config set <key> <value>")
            sys.exit(1)
        # Try to parse as JSON for non-string values
        try:
            parsed_value = json.loads(value)
        except json.JSONDecodeError:
            parsed_value = value

        try:
            overrides = set_config_value(load_project_config(root), key, parsed_value)
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except ConfigError as e:
            console.error(str(e))
            sys.exit(1)
        save_config(root, overrides)
        console.success(f"Set {key} = {parsed_value}")


if __name__ == "__main__":
    main()
