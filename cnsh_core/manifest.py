"""Project manifest (``package.json``) helpers."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .errors import ManifestExistsError, ManifestNotFoundError, ParseError

Prompt = Callable[[str, str], str]

_NAME_RE = re.compile(r"[^a-z0-9._~-]+")


@dataclass(frozen=True)
class InitField:
    key: str
    question: str
    default: str


def read_manifest(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ManifestNotFoundError(f"{path.name} not found in {path.parent}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ParseError(f"malformed manifest {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ParseError(f"malformed manifest {path}: expected a JSON object")
    return payload


def dependency_names(manifest: dict[str, Any]) -> list[str]:
    """Return the union of ``dependencies`` and ``devDependencies`` names, sorted."""

    names: set[str] = set()
    for key in ("dependencies", "devDependencies"):
        section = manifest.get(key)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ParseError(f"manifest field {key!r} must be an object")
        names.update(str(name) for name in section)
    return sorted(names)


def manifest_version(path: Path) -> str | None:
    try:
        manifest = read_manifest(path)
    except (ManifestNotFoundError, ParseError):
        return None
    version = manifest.get("version")
    return str(version) if version is not None else None


def default_package_name(directory: Path) -> str:
    name = _NAME_RE.sub("-", directory.name.lower()).strip("-.")
    return name or "package"


def init_fields(directory: Path) -> list[InitField]:
    return [
        InitField("name", "package name", default_package_name(directory)),
        InitField("version", "version", "1.0.0"),
        InitField("description", "description", ""),
        InitField("main", "entry point", "index.js"),
        InitField("test", "test command", 'echo "Error: no test specified" && exit 1'),
        InitField("author", "author", ""),
        InitField("license", "license", "ISC"),
    ]


def scaffold_manifest(directory: Path, *, use_defaults: bool, prompt: Prompt | None = None) -> Path:
    """Create ``package.json`` in ``directory``.

    With ``use_defaults`` every field takes its default; otherwise ``prompt``
    is asked for each one and an empty answer keeps the default.
    """

    path = directory / "package.json"
    if path.exists():
        raise ManifestExistsError(f"{path.name} already exists in {directory}")

    answers: dict[str, str] = {}
    for field in init_fields(directory):
        if use_defaults or prompt is None:
            answers[field.key] = field.default
            continue
        answer = prompt(field.question, field.default).strip()
        answers[field.key] = answer or field.default

    manifest: dict[str, Any] = {
        "name": answers["name"],
        "version": answers["version"],
        "description": answers["description"],
        "main": answers["main"],
        "scripts": {"test": answers["test"]},
        "author": answers["author"],
        "license": answers["license"],
    }
    path.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    return path
