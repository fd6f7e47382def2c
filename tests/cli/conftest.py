from __future__ import annotations

from collections.abc import Callable, Generator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker

from ztnet.config import get_settings


@pytest.fixture(autouse=True)
def runtime_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path]:
    config_path = tmp_path / "runtime-config.yaml"
    config_path.write_text(
        """
auth:
  local_auth:
    password_min_length: 16
    pbkdf2_iterations: 100000
""",
        encoding="utf-8",
    )
    monkeypatch.setenv("ZTNET_RUNTIME_CONFIG", str(config_path))
    get_settings.cache_clear()
    yield config_path
    get_settings.cache_clear()


@pytest.fixture()
def session_scope_factory(
    session_factory: sessionmaker[Session],
) -> Callable[[], AbstractContextManager[Session]]:
    @contextmanager
    def _scope() -> Generator[Session]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _scope
