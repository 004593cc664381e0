from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

from .errors import IssueStewardError
from .github_rest import DEFAULT_API_URL
from .models import DEFAULT_SERVER_URL
from .pacing import DEFAULT_DELAY_SECONDS, ExponentialBackoff, FixedDelay, PacingPolicy

TOKEN_ENV_VARS = ("ISSUESTEWARD_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")
BACKOFF_KINDS = ("fixed", "exponential")


class ConfigError(IssueStewardError):
    pass


@dataclass(frozen=True)
class StewardConfig:
    github_repo: str | None = None
    api_url: str = DEFAULT_API_URL
    server_url: str = DEFAULT_SERVER_URL
    search_per_page: int = 50
    search_fail_closed: bool = False
    duplicate_delay_seconds: float = DEFAULT_DELAY_SECONDS
    duplicate_backoff: str = "fixed"
    duplicate_backoff_max_seconds: float = 30.0
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    load_dotenv: bool = True
    dotenv_path: str | None = None

    def pacing_policy(self) -> PacingPolicy:
        if self.duplicate_backoff == "exponential":
            return ExponentialBackoff(
                base_seconds=self.duplicate_delay_seconds,
                max_seconds=self.duplicate_backoff_max_seconds,
            )
        return FixedDelay(self.duplicate_delay_seconds)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_float(value: Any, name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if result < 0:
        raise ConfigError(f"{name} must not be negative")
    return result


def _as_int(value: Any, name: str) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    if result <= 0:
        raise ConfigError(f"{name} must be positive")
    return result


def _validate(cfg: StewardConfig) -> StewardConfig:
    if cfg.duplicate_backoff not in BACKOFF_KINDS:
        raise ConfigError(
            f"duplicates.backoff must be one of {', '.join(BACKOFF_KINDS)}, "
            f"got {cfg.duplicate_backoff!r}"
        )
    if cfg.github_repo is not None and cfg.github_repo.count("/") != 1:
        raise ConfigError(f"github.repo must look like 'owner/repo', got {cfg.github_repo!r}")
    return cfg


def apply_env_overrides(
    cfg: StewardConfig, environ: Mapping[str, str] | None = None
) -> StewardConfig:
    env = os.environ if environ is None else environ
    changes: dict[str, Any] = {}
    # ISSUESTEWARD_* always wins; the GITHUB_* runner variables only fill unset values.
    repo = env.get("ISSUESTEWARD_REPO")
    if not repo and cfg.github_repo is None:
        repo = env.get("GITHUB_REPOSITORY")
    if repo:
        changes["github_repo"] = repo
    api_url = env.get("ISSUESTEWARD_API_URL")
    if not api_url and cfg.api_url == DEFAULT_API_URL:
        api_url = env.get("GITHUB_API_URL")
    if api_url:
        changes["api_url"] = api_url
    server_url = env.get("GITHUB_SERVER_URL")
    if server_url and cfg.server_url == DEFAULT_SERVER_URL:
        changes["server_url"] = server_url
    if "ISSUESTEWARD_SEARCH_FAIL_CLOSED" in env:
        changes["search_fail_closed"] = _env_flag(env["ISSUESTEWARD_SEARCH_FAIL_CLOSED"])
    if "ISSUESTEWARD_DUPLICATE_DELAY" in env:
        changes["duplicate_delay_seconds"] = _as_float(
            env["ISSUESTEWARD_DUPLICATE_DELAY"], "ISSUESTEWARD_DUPLICATE_DELAY"
        )
    if "ISSUESTEWARD_LOG_JSON" in env:
        changes["logging_json_enabled"] = _env_flag(env["ISSUESTEWARD_LOG_JSON"])
    if env.get("ISSUESTEWARD_LOG_LEVEL"):
        changes["logging_level"] = env["ISSUESTEWARD_LOG_LEVEL"]
    return _validate(replace(cfg, **changes)) if changes else cfg


def config_from_env(environ: Mapping[str, str] | None = None) -> StewardConfig:
    return apply_env_overrides(StewardConfig(), environ)


def load_config(path: str | Path, environ: Mapping[str, str] | None = None) -> StewardConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Configuration file not found: {p}")
    try:
        raw = cast(dict[str, Any], yaml.safe_load(p.read_text(encoding="utf-8")) or {})
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration root must be a mapping: {p}")
    gh = cast(dict[str, Any], raw.get("github", {}) or {})
    search = cast(dict[str, Any], raw.get("search", {}) or {})
    duplicates = cast(dict[str, Any], raw.get("duplicates", {}) or {})
    logging_config = cast(dict[str, Any], raw.get("logging", {}) or {})
    environment = cast(dict[str, Any], raw.get("environment", {}) or {})

    cfg = StewardConfig(
        github_repo=gh.get("repo"),
        api_url=gh.get("api_url", DEFAULT_API_URL),
        server_url=gh.get("server_url", DEFAULT_SERVER_URL),
        search_per_page=_as_int(search.get("per_page", 50), "search.per_page"),
        search_fail_closed=bool(search.get("fail_closed", False)),
        duplicate_delay_seconds=_as_float(
            duplicates.get("delay_seconds", DEFAULT_DELAY_SECONDS), "duplicates.delay_seconds"
        ),
        duplicate_backoff=str(duplicates.get("backoff", "fixed")),
        duplicate_backoff_max_seconds=_as_float(
            duplicates.get("max_delay_seconds", 30.0), "duplicates.max_delay_seconds"
        ),
        logging_json_enabled=bool(logging_config.get("json_enabled", False)),
        logging_level=str(logging_config.get("level", "INFO")),
        load_dotenv=bool(environment.get("load_dotenv", True)),
        dotenv_path=environment.get("dotenv_path"),
    )
    return apply_env_overrides(_validate(cfg), environ)


def resolve_token(
    cfg: StewardConfig | None = None, environ: Mapping[str, str] | None = None
) -> str | None:
    """First non-empty token from the environment, after loading ``.env`` if enabled."""
    if environ is None and (cfg is None or cfg.load_dotenv):
        dotenv_path = Path(cfg.dotenv_path) if cfg and cfg.dotenv_path else Path(".env")
        if dotenv_path.exists():
            load_dotenv(dotenv_path, override=False)
    env = os.environ if environ is None else environ
    for name in TOKEN_ENV_VARS:
        raw = env.get(name)
        if raw is None:
            continue
        token = raw.strip()
        if token:
            return token
    return None


__all__ = [
    "ConfigError",
    "StewardConfig",
    "apply_env_overrides",
    "config_from_env",
    "load_config",
    "resolve_token",
]
