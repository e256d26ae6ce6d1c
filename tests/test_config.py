from __future__ import annotations

from pathlib import Path

import pytest

from cnsh_core.config import DEFAULT_REGISTRY_URL, load_config


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CNSH_REGISTRY_URL", raising=False)
    monkeypatch.delenv("CNSH_GLOBAL_DIR", raising=False)


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_config(tmp_path)
    assert config.registry_url == DEFAULT_REGISTRY_URL
    assert config.max_retries == 0
    assert config.min_archive_bytes == 1024
    assert config.max_concurrency == 8
    assert config.global_dir == Path("~/.cnsh-global").expanduser()
    assert config.publish_command == ("npm", "publish")


def test_reads_sections_from_cnsh_toml(tmp_path: Path) -> None:
    (tmp_path / "cnsh.toml").write_text(
        """[registry]
url = "https://npm.internal.example/"
timeout_seconds = 5
max_retries = 2

[install]
min_archive_bytes = 10
max_concurrency = 3
global_dir = "/opt/cnsh"

[publish]
command = ["npm", "publish", "--access", "public"]
""",
        encoding="utf-8",
    )
    config = load_config(tmp_path)
    assert config.registry_url == "https://npm.internal.example"
    assert config.timeout_seconds == 5.0
    assert config.max_retries == 2
    assert config.min_archive_bytes == 10
    assert config.max_concurrency == 3
    assert config.global_dir == Path("/opt/cnsh")
    assert config.publish_command == ("npm", "publish", "--access", "public")


def test_environment_overrides_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    (tmp_path / "cnsh.toml").write_text('[registry]\nurl = "https://from-file"\n', encoding="utf-8")
    monkeypatch.setenv("CNSH_REGISTRY_URL", "https://from-env")
    monkeypatch.setenv("CNSH_GLOBAL_DIR", str(tmp_path / "global"))
    config = load_config(tmp_path)
    assert config.registry_url == "https://from-env"
    assert config.global_dir == tmp_path / "global"


def test_unreadable_config_falls_back_to_defaults(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    (tmp_path / "cnsh.toml").write_text("[registry\nurl = ", encoding="utf-8")
    with caplog.at_level("WARNING"):
        config = load_config(tmp_path)
    assert config.registry_url == DEFAULT_REGISTRY_URL
    assert "ignoring unreadable config" in caplog.text


def test_invalid_numeric_values_fall_back_to_defaults(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    (tmp_path / "cnsh.toml").write_text(
        '[registry]\nmax_retries = "x"\ntimeout_seconds = true\n\n[install]\nmax_concurrency = "4"\n',
        encoding="utf-8",
    )
    with caplog.at_level("WARNING"):
        config = load_config(tmp_path)
    assert config.max_retries == 0
    assert config.timeout_seconds == 30.0
    assert config.max_concurrency == 4
    assert "ignoring invalid max_retries = 'x'" in caplog.text
    assert "ignoring invalid timeout_seconds = True" in caplog.text
