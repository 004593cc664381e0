from __future__ import annotations

import os
from pathlib import Path

import pytest

from issuesteward.config import (
    ConfigError,
    StewardConfig,
    apply_env_overrides,
    config_from_env,
    load_config,
    resolve_token,
)
from issuesteward.pacing import ExponentialBackoff, FixedDelay

FULL_CONFIG = """
github:
  repo: acme/infra
  api_url: https://ghe.example.com/api/v3
  server_url: https://ghe.example.com
search:
  per_page: 25
  fail_closed: true
duplicates:
  delay_seconds: 1.5
  backoff: exponential
  max_delay_seconds: 10
logging:
  json_enabled: true
  level: DEBUG
environment:
  load_dotenv: false
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "issuesteward.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_full(tmp_path: Path):
    cfg = load_config(_write(tmp_path, FULL_CONFIG), environ={})
    assert cfg.github_repo == "acme/infra"
    assert cfg.api_url == "https://ghe.example.com/api/v3"
    assert cfg.server_url == "https://ghe.example.com"
    assert cfg.search_per_page == 25
    assert cfg.search_fail_closed is True
    assert cfg.logging_json_enabled is True
    assert cfg.logging_level == "DEBUG"
    assert cfg.load_dotenv is False
    policy = cfg.pacing_policy()
    assert isinstance(policy, ExponentialBackoff)
    assert policy.base_seconds == 1.5
    assert policy.max_seconds == 10.0


def test_load_config_defaults_for_empty_file(tmp_path: Path):
    cfg = load_config(_write(tmp_path, ""), environ={})
    assert cfg == StewardConfig()
    assert cfg.pacing_policy() == FixedDelay(0.5)


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.yaml", environ={})


def test_load_config_invalid_yaml(tmp_path: Path):
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(_write(tmp_path, "github: [unclosed"), environ={})


@pytest.mark.parametrize(
    "text",
    [
        "duplicates:\n  backoff: linear\n",
        "duplicates:\n  delay_seconds: -1\n",
        "search:\n  per_page: 0\n",
        "github:\n  repo: not-a-repo\n",
        "- just\n- a list\n",
    ],
)
def test_load_config_rejects_invalid_values(tmp_path: Path, text: str):
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, text), environ={})


def test_env_overrides_take_precedence_over_file(tmp_path: Path):
    env = {
        "ISSUESTEWARD_REPO": "acme/other",
        "GITHUB_REPOSITORY": "ignored/repo",
        "ISSUESTEWARD_SEARCH_FAIL_CLOSED": "false",
        "ISSUESTEWARD_DUPLICATE_DELAY": "2",
        "ISSUESTEWARD_LOG_JSON": "0",
        "ISSUESTEWARD_LOG_LEVEL": "WARNING",
    }
    cfg = load_config(_write(tmp_path, FULL_CONFIG), environ=env)
    assert cfg.github_repo == "acme/other"
    assert cfg.search_fail_closed is False
    assert cfg.duplicate_delay_seconds == 2.0
    assert cfg.logging_json_enabled is False
    assert cfg.logging_level == "WARNING"
    # An explicitly configured server URL is not replaced by the runner's.
    assert apply_env_overrides(cfg, {"GITHUB_SERVER_URL": "https://x"}).server_url == (
        "https://ghe.example.com"
    )


def test_runner_variables_fill_unset_values():
    cfg = config_from_env(
        {
            "GITHUB_REPOSITORY": "acme/infra",
            "GITHUB_API_URL": "https://ghe.example.com/api/v3",
            "GITHUB_SERVER_URL": "https://ghe.example.com",
        }
    )
    assert cfg.github_repo == "acme/infra"
    assert cfg.api_url == "https://ghe.example.com/api/v3"
    assert cfg.server_url == "https://ghe.example.com"


def test_invalid_env_delay_raises():
    with pytest.raises(ConfigError):
        config_from_env({"ISSUESTEWARD_DUPLICATE_DELAY": "soon"})


def test_resolve_token_precedence():
    assert resolve_token(environ={"GITHUB_TOKEN": "b", "GH_TOKEN": "c"}) == "b"
    assert resolve_token(environ={"ISSUESTEWARD_GITHUB_TOKEN": "a", "GITHUB_TOKEN": "b"}) == "a"
    assert resolve_token(environ={"GITHUB_TOKEN": "  ", "GH_TOKEN": "c"}) == "c"
    assert resolve_token(environ={}) is None


def test_resolve_token_loads_dotenv(tmp_path: Path, monkeypatch):
    for name in ("ISSUESTEWARD_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    dotenv = tmp_path / ".env"
    dotenv.write_text("GH_TOKEN=from-dotenv\n", encoding="utf-8")

    try:
        assert resolve_token(StewardConfig(dotenv_path=str(dotenv))) == "from-dotenv"
    finally:
        os.environ.pop("GH_TOKEN", None)


def test_resolve_token_skips_dotenv_when_disabled(tmp_path: Path, monkeypatch):
    for name in ("ISSUESTEWARD_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    dotenv = tmp_path / ".env"
    dotenv.write_text("GH_TOKEN=from-dotenv\n", encoding="utf-8")

    assert resolve_token(StewardConfig(load_dotenv=False, dotenv_path=str(dotenv))) is None
