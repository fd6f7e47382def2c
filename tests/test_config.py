from __future__ import annotations

from pathlib import Path

import pytest

from ztnet.config import AppSettings, get_settings


def _write_runtime_config(tmp_path: Path, content: str) -> Path:
    runtime_config = tmp_path / "runtime-config.yaml"
    runtime_config.write_text(content, encoding="utf-8")
    return runtime_config


def test_missing_runtime_config_falls_back_to_defaults(tmp_path: Path) -> None:
    settings = AppSettings.from_yaml(str(tmp_path / "absent.yaml"))

    assert settings.app_env == "development"
    assert settings.session_cookie_name == "ztnet_session"
    assert settings.session_cookie_secure is False
    assert settings.zt_provider == "self_hosted_controller"
    assert settings.log_level == "INFO"
    assert settings.webhook_timeout_seconds == 5.0


def test_production_env_defaults_to_secure_cookies(tmp_path: Path) -> None:
    runtime_config = _write_runtime_config(tmp_path, "app:\n  env: Production\n")

    settings = AppSettings.from_yaml(str(runtime_config))

    assert settings.app_env == "production"
    assert settings.session_cookie_secure is True


def test_from_yaml_reads_local_auth_settings(tmp_path: Path) -> None:
    runtime_config = _write_runtime_config(
        tmp_path,
        """
auth:
  local_auth:
    enabled: false
    password_min_length: 14
    pbkdf2_iterations: 420000
""",
    )

    settings = AppSettings.from_yaml(str(runtime_config))

    assert settings.local_auth_enabled is False
    assert settings.local_auth_password_min_length == 14
    assert settings.local_auth_pbkdf2_iterations == 420000


def test_from_yaml_clamps_local_auth_bounds(tmp_path: Path) -> None:
    runtime_config = _write_runtime_config(
        tmp_path,
        """
auth:
  local_auth:
    password_min_length: 2
    pbkdf2_iterations: 10
""",
    )

    settings = AppSettings.from_yaml(str(runtime_config))

    assert settings.local_auth_password_min_length == 8
    assert settings.local_auth_pbkdf2_iterations == 100000


def test_from_yaml_reads_controller_and_webhook_settings(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("ZT_CONTROLLER_AUTH_TOKEN", "controller-secret")
    runtime_config = _write_runtime_config(
        tmp_path,
        """
app:
  log_level: debug
redis:
  url: redis://example:6379/9
zerotier:
  provider: CENTRAL
  http_timeout_seconds: 0.2
  central:
    base_url: https://central.example/api
    api_token: central-secret
  self_hosted_controller:
    base_url: http://controller.example:9993/controller
    auth_token_file: /var/lib/zerotier-one/authtoken.secret
webhooks:
  timeout_seconds: 12
""",
    )

    settings = AppSettings.from_yaml(str(runtime_config))

    assert settings.log_level == "DEBUG"
    assert settings.redis_url == "redis://example:6379/9"
    assert settings.zt_provider == "central"
    assert settings.is_central is True
    assert settings.zt_http_timeout_seconds == 1.0
    assert settings.zt_central_base_url == "https://central.example/api"
    assert settings.zt_central_api_token == "central-secret"
    assert settings.zt_controller_base_url == "http://controller.example:9993/controller"
    assert settings.zt_controller_auth_token == "controller-secret"
    assert settings.zt_controller_auth_token_file == "/var/lib/zerotier-one/authtoken.secret"
    assert settings.webhook_timeout_seconds == 12.0


def test_from_yaml_rejects_unknown_provider(tmp_path: Path) -> None:
    runtime_config = _write_runtime_config(tmp_path, "zerotier:\n  provider: moon\n")

    with pytest.raises(ValueError, match="unsupported zerotier.provider"):
        AppSettings.from_yaml(str(runtime_config))


def test_from_yaml_rejects_unknown_log_level(tmp_path: Path) -> None:
    runtime_config = _write_runtime_config(tmp_path, "app:\n  log_level: chatty\n")

    with pytest.raises(ValueError, match="unsupported app.log_level"):
        AppSettings.from_yaml(str(runtime_config))


def test_get_settings_reads_path_from_environment(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    runtime_config = _write_runtime_config(tmp_path, "app:\n  secret_key: from-file\n")
    monkeypatch.setenv("ZTNET_RUNTIME_CONFIG", str(runtime_config))
    get_settings.cache_clear()
    try:
        settings = get_settings()
    finally:
        get_settings.cache_clear()

    assert settings.runtime_config_path == str(runtime_config)
    assert settings.app_secret_key == "from-file"
