from __future__ import annotations

from typing import List

import gateway.cli as cli
from gateway.config import Settings
from gateway.errors import StartupError


def _quiet(monkeypatch) -> List[Settings]:
    seen: List[Settings] = []
    monkeypatch.setattr(cli, "configure_logging", lambda *a, **k: None)

    async def _run(settings: Settings) -> None:
        seen.append(settings)

    monkeypatch.setattr(cli, "_run", _run)
    return seen


def test_flags_override_settings(monkeypatch) -> None:
    seen = _quiet(monkeypatch)
    assert cli.main(["--port", "8123", "--env", "Development", "--login"]) == 0
    (settings,) = seen
    assert settings.port == 8123
    assert settings.is_development
    assert settings.login_enabled is True


def test_startup_failure_exits_non_zero(monkeypatch) -> None:
    _quiet(monkeypatch)

    async def _boom(settings: Settings) -> None:
        raise StartupError("login", "not allowed in production")

    monkeypatch.setattr(cli, "_run", _boom)
    assert cli.main(["--env", "production", "--login"]) == 1
