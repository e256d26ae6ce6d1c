from __future__ import annotations

import json
from pathlib import Path

import pytest

from cnsh_core.errors import ManifestExistsError, ManifestNotFoundError, ParseError
from cnsh_core.manifest import dependency_names, manifest_version, read_manifest, scaffold_manifest


def test_dependency_names_unions_production_and_dev() -> None:
    manifest = {
        "dependencies": {"react": "^18.0.0", "lodash": "^4.0.0"},
        "devDependencies": {"lodash": "^4.0.0", "jest": "^29.0.0"},
    }
    assert dependency_names(manifest) == ["jest", "lodash", "react"]


def test_dependency_names_empty_when_sections_missing() -> None:
    assert dependency_names({"name": "app"}) == []


def test_dependency_names_rejects_non_object_section() -> None:
    with pytest.raises(ParseError, match="dependencies"):
        dependency_names({"dependencies": ["lodash"]})


def test_read_manifest_missing_raises(tmp_path: Path) -> None:
    with pytest.raises(ManifestNotFoundError, match="package.json not found"):
        read_manifest(tmp_path / "package.json")


def test_read_manifest_malformed_raises(tmp_path: Path) -> None:
    path = tmp_path / "package.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ParseError):
        read_manifest(path)


def test_manifest_version_reads_field(tmp_path: Path) -> None:
    path = tmp_path / "package.json"
    path.write_text(json.dumps({"name": "app", "version": "2.4.1"}), encoding="utf-8")
    assert manifest_version(path) == "2.4.1"
    assert manifest_version(tmp_path / "missing.json") is None


def test_scaffold_with_defaults(tmp_path: Path) -> None:
    project = tmp_path / "My Project"
    project.mkdir()

    path = scaffold_manifest(project, use_defaults=True)

    manifest = json.loads(path.read_text(encoding="utf-8"))
    assert manifest["name"] == "my-project"
    assert manifest["version"] == "1.0.0"
    assert manifest["main"] == "index.js"
    assert manifest["license"] == "ISC"
    assert "test" in manifest["scripts"]


def test_scaffold_uses_prompt_answers_and_keeps_defaults_for_blanks(tmp_path: Path) -> None:
    answers = {"package name": "widget", "version": "", "author": "Sam"}
    asked: list[str] = []

    def _prompt(question: str, default: str) -> str:
        asked.append(question)
        return answers.get(question, "")

    path = scaffold_manifest(tmp_path, use_defaults=False, prompt=_prompt)

    manifest = json.loads(path.read_text(encoding="utf-8"))
    assert manifest["name"] == "widget"
    assert manifest["version"] == "1.0.0"
    assert manifest["author"] == "Sam"
    assert asked[0] == "package name"
    assert len(asked) == 7


def test_scaffold_refuses_to_overwrite(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")
    with pytest.raises(ManifestExistsError):
        scaffold_manifest(tmp_path, use_defaults=True)
