"""Layered YAML configuration with include: directives."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from wipsquash.core.log import logger

DEFAULTS_FILE = Path(__file__).parent.parent / "defaults" / "default.yaml"
CONFIG_NAME = "wipsquash.yaml"


def user_config_file() -> Path:
    return Path(user_config_dir("wipsquash", appauthor=False)) / CONFIG_NAME


def cli_includes(argv: list[str] | None = None) -> list[str]:
    """--include values from argv, read before pydantic parses it so
    the files can take part in the YAML layering.
    """
    args = iter((sys.argv if argv is None else argv)[1:])
    includes = []
    for arg in args:
        if arg == "--include":
            value = next(args, None)
            if value is not None:
                includes.append(value)
        elif arg.startswith("--include="):
            includes.append(arg.partition("=")[2])
    return includes


def merge_dicts(base: dict, override: dict) -> dict:
    """New dict of base updated with override, recursing into
    nested dicts. Neither argument is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_dicts(current, value)
        else:
            merged[key] = value
    return merged


def load_yaml(path: Path, chain: tuple[Path, ...] = ()) -> dict:
    """Read one YAML file with its includes merged underneath it.

    include: takes a path or a list of paths, relative to the
    including file.

    Raises:
        ValueError: A file includes itself, directly or not
    """
    path = path.resolve()
    if path in chain:
        raise ValueError(f"Circular include: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    includes = data.pop("include", None) or []
    if isinstance(includes, str):
        includes = [includes]

    merged: dict = {}
    for include in includes:
        target = Path(include).expanduser()
        if not target.is_absolute():
            target = path.parent / target
        logger.debug("Including configuration", source=str(path), include=str(target))
        merged = merge_dicts(merged, load_yaml(target, (*chain, path)))

    return merge_dicts(merged, data)


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """Every YAML layer, later ones winning:

        package defaults < user config < project file < --include files

    A missing layer is skipped.
    """

    def __init__(self, settings_cls: type[BaseSettings], yaml_file=None):
        """
        Args:
            settings_cls: Settings class being loaded
            yaml_file: Project file (default: the class's yaml_file,
                else wipsquash.yaml)
        """
        self.project_file = Path(
            yaml_file or settings_cls.model_config.get("yaml_file") or CONFIG_NAME
        )
        super().__init__(settings_cls, cli_includes() or None)

    def _read_files(self, files, deep_merge: bool = False):  # noqa: ARG002
        if isinstance(files, (str, os.PathLike)):
            files = [files]
        layers = [DEFAULTS_FILE, user_config_file(), self.project_file]
        layers.extend(Path(f).expanduser() for f in files or [])

        data: dict = {}
        for layer in layers:
            if not layer.is_file():
                logger.trace("No configuration file", file=str(layer))
                continue
            logger.debug("Loading configuration", file=str(layer))
            data = merge_dicts(data, load_yaml(layer))
        return data
