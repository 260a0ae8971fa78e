"""Application state and configuration."""

from __future__ import annotations

import os
import re
from datetime import date
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from wipsquash.core.base import BaseConfig, BaseState
from wipsquash.core.log import Logger
from wipsquash.core.yaml_settings import YamlWithIncludesSettingsSource

# Modules available for template substitution in YAML files
# Usage: {platformdirs.user_state_dir}, {os.getcwd}, {Path.cwd}
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}

# ============================================================
# CONFIG MODELS (loaded from YAML/env/CLI)
# ============================================================

class GitConfig(BaseConfig):
    """Repository location and staging behavior."""

    workdir: Path = Field(
        default_factory=Path.cwd,
        description="Repository working directory (default: current directory)"
    )
    auto_stage: bool = Field(
        default=True,
        description="Stage every change with 'git add -A' before auto-commit",
    )


class WipConfig(BaseConfig):
    """How WIP commits are recognized."""

    prefix: str = Field(
        default="[AUTO-WIP]",
        min_length=1,
        description="Marker that starts every auto-generated commit message",
    )
    scan_limit: int = Field(
        default=100,
        gt=0,
        description=(
            "Number of recent commits examined when looking for the "
            "WIP run. Commits older than this are never squashed."
        ),
    )


class SquashConfig(BaseConfig):
    """squash-wip command behavior."""

    auto_generate_message: bool = Field(
        default=True,
        description="Ask the LLM for the consolidated commit message",
    )
    show_preview: bool = Field(
        default=True,
        description="Print the commits about to be squashed",
    )


class AutoCommitConfig(BaseConfig):
    """auto-commit hook behavior."""

    enabled: bool = Field(
        default=True,
        description="Create WIP commits when the hook fires",
    )
    generate_message: bool = Field(
        default=True,
        description="Ask the LLM to describe each WIP commit",
    )
    include_file_summary: bool = Field(
        default=True,
        description="Mention added/modified/deleted counts in the message",
    )
    max_message_length: int = Field(
        default=100,
        gt=0,
        description="Maximum length of a WIP commit message",
    )
    safe_mode: bool = Field(
        default=True,
        description=(
            "Always exit 0 so a failing hook never interrupts the "
            "calling session"
        ),
    )


class LLMConfig(BaseConfig):
    """LLM provider and model selection."""

    model: str = Field(
        default="anthropic:claude-haiku-4-5",
        description="pydantic-ai model name, provider:model",
    )
    api_key: str | None = Field(
        default=None,
        description="Provider API key (default: the provider's own variable, "
        "such as ANTHROPIC_API_KEY)",
    )
    base_url: str | None = Field(
        default=None,
        description="Endpoint for OpenAI-compatible servers",
    )
    attempts: int = Field(
        default=3,
        ge=1,
        description="Generation attempts before falling back",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds allowed for each generation attempt",
    )
    retry_backoff: float = Field(
        default=1.0,
        ge=0,
        description="Delay after attempt N is N times this many seconds",
    )


class Config(BaseConfig):
    """Application configuration loaded from YAML/env/CLI."""

    logger: Logger = Field(
        default=None,
        description="Logger configuration and runtime instance"
    )
    git: GitConfig = Field(
        default_factory=GitConfig,
        description="Repository settings"
    )
    wip: WipConfig = Field(
        default_factory=WipConfig,
        description="WIP marker and scan window"
    )
    squash: SquashConfig = Field(
        default_factory=SquashConfig,
        description="squash-wip settings"
    )
    auto_commit: AutoCommitConfig = Field(
        default_factory=AutoCommitConfig,
        description="auto-commit hook settings"
    )
    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM provider and model settings"
    )

    log_level: str = Field(
        default="warn",
        alias="log-level",
        description=(
            "Console log level: 'trace', 'debug', 'info', "
            "'warn', 'error', 'fatal'"
        ),
    )
    debug: bool = Field(
        default=False,
        description=(
            "Show debug logging, raw git stderr and tracebacks"
        ),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "wipsquash"
        ),
        description=(
            "Root directory for log files "
            "(supports {platformdirs.*} templates)"
        ),
    )
    prompts: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="LLM prompt templates, keyed by task",
    )

    model_config = ConfigDict(populate_by_name=True)

    def setup_logger(self):
        """Initialize the global logger from this configuration.

        Called by State once templates such as {platformdirs.*} in
        log_root have been substituted.
        """
        from wipsquash.core.log import setup_logger

        if self.logger is None:
            self.logger = Logger()

        self.logger.console.level = "debug" if self.debug else self.log_level

        setup_logger(
            log_root=self.log_root,
            run_name=f"wipsquash-{date.today():%Y-%m-%d}",
            level=self.logger.level,
            console=self.logger.console,
            file=self.logger.file,
            logfire=self.logger.logfire,
        )

    def close(self):
        """Close config and the global logger."""
        from wipsquash.core.log import logger
        logger.close()

        super().close()


# ============================================================
# RUNTIME STATE MODELS (mutable during command execution)
# ============================================================

class SquashState(BaseState):
    """Consolidation runtime state (mutates during execution)."""

    repo: Any = Field(
        default=None,
        description="Repository being consolidated",
    )
    wip_run: Any = Field(
        default=None,
        description="WIP run being collapsed",
    )
    message: str = Field(
        default="",
        description="Message for the consolidated commit",
    )
    snapshot: Any = Field(
        default=None,
        description="Shelved working tree, if there was anything to shelve",
    )
    original_head: str | None = Field(
        default=None,
        description="HEAD before the reset, used to undo a failed commit",
    )
    new_commit: str | None = Field(
        default=None,
        description="Hash of the consolidated commit",
    )
    error: str | None = Field(
        default=None,
        description="First failure encountered, if any",
    )
    warning: str | None = Field(
        default=None,
        description="Non-fatal problem restoring the working tree",
    )
    recovered: bool = Field(
        default=True,
        description="Whether the working tree came back intact",
    )
    status: str = Field(
        default="pending",
        description="Status: pending, running, complete, failed",
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)


class AutoCommitState(BaseState):
    """auto-commit runtime state."""

    message: str = Field(
        default="",
        description="Message of the WIP commit",
    )
    commit_hash: str | None = Field(
        default=None,
        description="Hash of the WIP commit, if one was made",
    )
    status: str = Field(
        default="pending",
        description="Status: pending, skipped, complete, failed",
    )


class Runtime(BaseModel):
    """All runtime state, one section per command."""

    squash: SquashState = Field(
        default_factory=SquashState,
        description="squash-wip runtime state"
    )
    auto_commit: AutoCommitState = Field(
        default_factory=AutoCommitState,
        description="auto-commit runtime state"
    )


# ============================================================
# TEMPLATES ({platformdirs.user_log_dir}, {config.git.workdir})
# ============================================================

_TEMPLATE = re.compile(r'\{([a-z._]+)\}')


def _resolve(path: str, state: State) -> str | None:
    """Value of one dotted template reference, or None if it
    doesn't name anything.
    """
    head, *rest = path.split(".")
    if head in TEMPLATE_NAMESPACE:
        obj = TEMPLATE_NAMESPACE[head]
    elif head == "config":
        obj = state.config
    else:
        return None

    try:
        for part in rest:
            obj = getattr(obj, part)
        if callable(obj):
            if getattr(obj, "__module__", "") == "platformdirs":
                obj = obj("wipsquash", appauthor=False)
            else:
                obj = obj()
    except (AttributeError, TypeError):
        return None
    return str(obj)


def expand(text: str, state: State) -> str:
    """Fill in {dotted.path} references in text.

    Anything that doesn't resolve, such as braces in a prompt, is
    kept as written.
    """
    def replace(match):
        value = _resolve(match.group(1), state)
        return match.group(0) if value is None else value

    return _TEMPLATE.sub(replace, text)


def expand_all(obj: Any, state: State) -> Any:
    """Expand templates in every str and Path under obj, in place
    for models and dicts. The logger section is left alone.
    """
    if isinstance(obj, str):
        return expand(obj, state)
    if isinstance(obj, Path):
        text = expand(str(obj), state)
        return obj if text == str(obj) else Path(text)
    if isinstance(obj, Logger):
        return obj
    if isinstance(obj, BaseModel):
        for name in type(obj).model_fields:
            value = getattr(obj, name)
            expanded = expand_all(value, state)
            if expanded is not value:
                setattr(obj, name, expanded)
    elif isinstance(obj, dict):
        for key, value in obj.items():
            obj[key] = expand_all(value, state)
    return obj


# ============================================================
# STATE (config + runtime combined)
# ============================================================

class State(BaseSettings):
    """Configuration plus the runtime state of the running command.

    Commands and workflow nodes all receive this one object.
    """

    config: Config = Field(
        default_factory=Config,
        description="Settings from YAML, environment and command line",
    )
    runtime: Runtime = Field(
        default_factory=Runtime,
        description="Filled in while a command runs",
    )
    include: list[str] | None = Field(
        default=None,
        description="Extra YAML files merged over the others (--include)",
    )

    model_config = SettingsConfigDict(
        yaml_file="wipsquash.yaml",
        env_file=".env",
        env_prefix="WIPSQUASH_",
        env_nested_delimiter="__",
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        # .env may hold unrelated variables
        extra='ignore'
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Highest priority first: init arguments (and the command
        line), environment, .env, YAML files, file secrets.
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> State:
        expand_all(self.config, self)
        return self

    @model_validator(mode="after")
    def _setup_logger(self) -> State:
        # After substitution so log_root is a real path
        self.config.setup_logger()
        return self


__all__ = ["State", "Config", "LLMConfig", "BaseConfig", "BaseState", "expand"]
