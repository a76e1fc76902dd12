"""Configuration loading.

Process settings come from NANOCD_* environment variables. Reconciliation
policy comes from a YAML file read once at startup; it uses the camelCase
keys of the policy file format:

    refreshIntervalSeconds: 60
    namespaces:
      prod:
        deployment: [api]
        images:
          registry/api: {prefix: v, versionMatch: "<2.0.0"}
        discordWebhook: https://discord.com/api/webhooks/...
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from nanocd.errors import ConfigInvalid
from nanocd.models.config import (
    APIConfig,
    LogConfig,
    NanoCDSettings,
    PolicyConfig,
    ReconcilerConfig,
    RegistryConfig,
)
from nanocd.models.policy_file import PolicyFile

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"NANOCD_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default))
    try:
        val = int(raw)
    except ValueError as exc:
        raise ConfigInvalid(f"NANOCD_{key}", f"expected an integer, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None, max_val: float | None = None) -> float:
    raw = _env(key, str(default))
    try:
        val = float(raw)
    except ValueError as exc:
        raise ConfigInvalid(f"NANOCD_{key}", f"expected a number, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_choice(key: str, value: str, valid: set[str]) -> str:
    if value.lower() not in valid:
        raise ConfigInvalid(f"NANOCD_{key}", f"invalid value {value!r}, must be one of {sorted(valid)}")
    return value.lower()


def load_settings() -> NanoCDSettings:
    """Load process settings from NANOCD_* environment variables."""
    request_timeout = _env_float("REQUEST_TIMEOUT", 10.0, min_val=1.0, max_val=120.0)
    return NanoCDSettings(
        config_path=_env("CONFIG_PATH", "/etc/nanocd/config.yaml"),
        registry=RegistryConfig(
            timeout_seconds=_env_float("REGISTRY_TIMEOUT", request_timeout, min_val=1.0, max_val=120.0),
            max_pages=_env_int("REGISTRY_MAX_PAGES", 20, min_val=1, max_val=200),
        ),
        reconciler=ReconcilerConfig(
            request_timeout_seconds=request_timeout,
            max_concurrency=_env_int("MAX_CONCURRENCY", 1, min_val=1, max_val=32),
            dry_run=_env_bool("DRY_RUN", False),
        ),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", True),
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_choice("LOG_LEVEL", _env("LOG_LEVEL", "info"), {"debug", "info", "warning", "error"}),
            format=_validate_choice("LOG_FORMAT", _env("LOG_FORMAT", "json"), {"json", "console"}),
        ),
    )


# ---------------------------------------------------------------------------
# Policy file
# ---------------------------------------------------------------------------


def load_policy(path: str | Path) -> PolicyConfig:
    """Read and validate the YAML policy file at *path*.

    Raises:
        ConfigInvalid: unreadable file, YAML syntax error or schema violation.
    """
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigInvalid(str(file_path), f"cannot read policy file: {exc.strerror or exc}") from exc

    try:
        data = YAML(typ="safe").load(text)
    except YAMLError as exc:
        raise ConfigInvalid(str(file_path), f"invalid YAML: {exc}") from exc

    return parse_policy(data)


def parse_policy(data: Any) -> PolicyConfig:
    """Validate an already-parsed policy document and build a PolicyConfig."""
    try:
        return PolicyFile.model_validate(data).to_policy()
    except ValidationError as exc:
        raise _config_invalid(exc) from exc


def _config_invalid(exc: ValidationError) -> ConfigInvalid:
    """First validation error as a ConfigInvalid keyed by its dotted location."""
    err = exc.errors()[0]
    path = ".".join(str(part) for part in err["loc"])
    kind = err["type"]
    if kind == "value_error":
        message = str(err.get("ctx", {}).get("error", err["msg"]))
    elif kind == "extra_forbidden":
        message = "unknown key"
    elif kind == "missing":
        message = "is required"
    elif kind in ("model_type", "dict_type"):
        message = f"expected a mapping, got {type(err['input']).__name__}"
    else:
        message = err["msg"]
    return ConfigInvalid(path, message)
