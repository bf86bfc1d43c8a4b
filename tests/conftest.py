"""Shared fixtures: phrase tables, simulated desktops and a service factory."""

from pathlib import Path

import pytest

from deskvoice.device import SimElement, SimulatedBackend
from deskvoice.language import LanguageResourceStore
from deskvoice.service import CommandService
from deskvoice.utils import config_from_dict

PROJECT_ROOT = Path(__file__).parent.parent
LANG_DIR = PROJECT_ROOT / "assets" / "lang"


@pytest.fixture
def store() -> LanguageResourceStore:
    """The shipped ru/en phrase tables plus a couple of aliases."""
    return LanguageResourceStore.load(
        LANG_DIR,
        aliases=config_from_dict(
            {
                "aliases": [
                    {
                        "alias": "настройки звука",
                        "locale": "ru",
                        "steps": [
                            {"action": "click", "selector": {"name": "Настройки"}},
                            {"action": "click", "selector": {"name": "Звук"}},
                        ],
                    },
                    {"alias": "save", "action": "click", "selector": {"automation_id": "SaveButton"}},
                ]
            },
            apply_env=False,
        ).aliases,
    )


@pytest.fixture
def desktop() -> SimulatedBackend:
    window = SimElement(name="Главное окно", role="window")
    window.add(SimElement(name="Настройки", role="button", automation_id="SettingsButton"))
    window.add(SimElement(name="Звук", role="button", automation_id="SoundButton"))
    window.add(SimElement(name="Сохранить", role="button", automation_id="SaveButton"))
    window.add(SimElement(name="Поиск", role="edit", automation_id="SearchBox", value=""))
    window.add(SimElement(name="Уведомления", role="checkbox", checked=False))
    return SimulatedBackend([window])


@pytest.fixture
def make_service(store):
    """Build a CommandService over a given backend with fast timings."""

    def _make(backend, retry_ceiling=2, timeout_ms=200, workers=1):
        config = config_from_dict(
            {
                "language": "ru",
                "executor": {"retry_ceiling": retry_ceiling, "timeout_ms": timeout_ms, "workers": workers},
                "backoff": {"initial_ms": 1, "multiplier": 2.0, "max_ms": 5},
            },
            apply_env=False,
        )
        return CommandService(config, store, backend)

    return _make
