"""``package.json`` access for the generated project."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from stagectl.infrastructure.filesystem import write_text_atomic

PACKAGE_JSON = "package.json"

PackageConfig = dict[str, Any]


def package_json_path(project_dir: Path) -> Path:
    return project_dir / PACKAGE_JSON


def read_package_config(project_dir: Path) -> PackageConfig:
    """Load ``package.json`` from *project_dir*."""
    raw = package_json_path(project_dir).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        msg = f"{PACKAGE_JSON} in {project_dir} is not a JSON object"
        raise ValueError(msg)
    return data


def update_package_config(
    project_dir: Path,
    *transforms: Callable[[PackageConfig], None],
) -> PackageConfig:
    """Apply *transforms* in order within one read-modify-write cycle."""
    config = read_package_config(project_dir)
    for transform in transforms:
        transform(config)
    write_text_atomic(package_json_path(project_dir), json.dumps(config, indent=2) + "\n")
    return config


def add_dev_dependencies(packages: Mapping[str, str]) -> Callable[[PackageConfig], None]:
    """Transform: merge *packages* into ``devDependencies``."""

    def transform(config: PackageConfig) -> None:
        config.setdefault("devDependencies", {}).update(packages)

    return transform


def add_scripts(scripts: Mapping[str, str]) -> Callable[[PackageConfig], None]:
    """Transform: merge *scripts* into ``scripts``."""

    def transform(config: PackageConfig) -> None:
        config.setdefault("scripts", {}).update(scripts)

    return transform


def declared_dependencies(config: PackageConfig) -> dict[str, str]:
    """``dependencies`` and ``devDependencies`` merged, dev entries last."""
    merged: dict[str, str] = {}
    for key in ("dependencies", "devDependencies"):
        section = config.get(key) or {}
        merged.update({str(k): str(v) for k, v in section.items()})
    return merged
