"""Application configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, cast

import yaml

ControllerProvider = Literal[
    "central",
    "self_hosted_controller",
]
PROVIDER_CENTRAL: ControllerProvider = "central"
PROVIDER_SELF_HOSTED_CONTROLLER: ControllerProvider = "self_hosted_controller"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True, slots=True)
class AppSettings:
    app_env: str
    app_secret_key: str
    session_cookie_name: str
    session_cookie_max_age_seconds: int
    session_cookie_secure: bool
    local_auth_enabled: bool
    local_auth_password_min_length: int
    local_auth_pbkdf2_iterations: int
    runtime_config_path: str = "runtime-config.yaml"
    log_level: str = "INFO"
    redis_url: str = "redis://localhost:6379/0"
    zt_provider: str = PROVIDER_SELF_HOSTED_CONTROLLER
    zt_http_timeout_seconds: float = 10.0
    zt_central_base_url: str = "https://api.zerotier.com/api/v1"
    zt_central_api_token: str = ""
    zt_controller_base_url: str = "http://127.0.0.1:9993/controller"
    zt_controller_auth_token: str = ""
    zt_controller_auth_token_file: str = ""
    webhook_timeout_seconds: float = 5.0

    @property
    def is_central(self) -> bool:
        return self.zt_provider.strip().lower() == PROVIDER_CENTRAL

    @classmethod
    def from_yaml(cls, runtime_config_path: str = "runtime-config.yaml") -> AppSettings:
        normalized_path = runtime_config_path.strip() or "runtime-config.yaml"
        config = _load_runtime_config(normalized_path)

        app_cfg = cast(dict[str, Any], config.get("app", {}))
        session_cfg = cast(dict[str, Any], config.get("session", {}))
        auth_cfg = cast(dict[str, Any], config.get("auth", {}))
        local_auth_cfg = cast(dict[str, Any], auth_cfg.get("local_auth", {}))
        redis_cfg = cast(dict[str, Any], config.get("redis", {}))
        zerotier_cfg = cast(dict[str, Any], config.get("zerotier", {}))
        central_cfg = cast(dict[str, Any], zerotier_cfg.get("central", {}))
        controller_cfg = cast(
            dict[str, Any], zerotier_cfg.get("self_hosted_controller", {})
        )
        webhooks_cfg = cast(dict[str, Any], config.get("webhooks", {}))

        app_env = str(app_cfg.get("env", "development")).lower()

        return cls(
            app_env=app_env,
            app_secret_key=str(app_cfg.get("secret_key", "change-me")),
            session_cookie_name=str(session_cfg.get("cookie_name", "ztnet_session")),
            session_cookie_max_age_seconds=int(
                session_cfg.get("cookie_max_age_seconds", 8 * 60 * 60)
            ),
            session_cookie_secure=bool(
                session_cfg.get("cookie_secure", app_env == "production")
            ),
            local_auth_enabled=bool(local_auth_cfg.get("enabled", True)),
            local_auth_password_min_length=max(
                8,
                int(local_auth_cfg.get("password_min_length", 12)),
            ),
            local_auth_pbkdf2_iterations=max(
                100_000,
                int(local_auth_cfg.get("pbkdf2_iterations", 390_000)),
            ),
            runtime_config_path=normalized_path,
            log_level=_resolve_log_level(app_cfg.get("log_level", "INFO")),
            redis_url=str(redis_cfg.get("url", "redis://localhost:6379/0")),
            zt_provider=_resolve_provider(config),
            zt_http_timeout_seconds=max(
                1.0,
                float(zerotier_cfg.get("http_timeout_seconds", 10.0)),
            ),
            zt_central_base_url=str(
                central_cfg.get("base_url", "https://api.zerotier.com/api/v1")
            ),
            zt_central_api_token=str(central_cfg.get("api_token", "")),
            zt_controller_base_url=str(
                controller_cfg.get("base_url", "http://127.0.0.1:9993/controller")
            ),
            zt_controller_auth_token=os.environ.get("ZT_CONTROLLER_AUTH_TOKEN", ""),
            zt_controller_auth_token_file=str(
                controller_cfg.get("auth_token_file", "")
            ),
            webhook_timeout_seconds=max(
                1.0,
                float(webhooks_cfg.get("timeout_seconds", 5.0)),
            ),
        )

    @classmethod
    def from_env(cls, runtime_config_path: str = "runtime-config.yaml") -> AppSettings:
        return cls.from_yaml(
            runtime_config_path=os.environ.get("ZTNET_RUNTIME_CONFIG", runtime_config_path)
        )


def _load_runtime_config(runtime_config_path: str) -> dict[str, Any]:
    path = Path(runtime_config_path)
    if not path.exists() or not path.is_file():
        return {}

    parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    if isinstance(parsed, dict):
        return parsed
    return {}


def _resolve_provider(config: dict[str, Any]) -> ControllerProvider:
    zerotier_cfg = cast(dict[str, Any], config.get("zerotier", {}))
    normalized_provider = str(
        zerotier_cfg.get("provider", PROVIDER_SELF_HOSTED_CONTROLLER)
    ).lower()

    if normalized_provider == PROVIDER_CENTRAL:
        return PROVIDER_CENTRAL
    if normalized_provider == PROVIDER_SELF_HOSTED_CONTROLLER:
        return PROVIDER_SELF_HOSTED_CONTROLLER

    raise ValueError(
        "unsupported zerotier.provider in runtime config: "
        f"{normalized_provider!r}; expected one of "
        f"{PROVIDER_CENTRAL!r}, {PROVIDER_SELF_HOSTED_CONTROLLER!r}"
    )


def _resolve_log_level(raw_level: object) -> str:
    normalized = str(raw_level).strip().upper()
    if normalized not in _LOG_LEVELS:
        raise ValueError(f"unsupported app.log_level in runtime config: {raw_level!r}")
    return normalized


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings.from_env()
