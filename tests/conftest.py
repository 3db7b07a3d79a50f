from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))
FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"

from mbxclient.config import get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """Keep the developer's MBX_* environment out of the tests."""
    for name in (
        "MBX_API_KEY",
        "MBX_SECRET_KEY",
        "MBX_KEY_TYPE",
        "MBX_PASSPHRASE",
        "MBX_BASE_REST_URL",
        "MBX_BASE_WS_URL",
        "MBX_COMBINED_WS_URL",
        "MBX_HTTP_PROXY_URL",
        "MBX_WS_PROXY_URL",
        "MBX_USE_TESTNET",
        "MBX_TIME_OFFSET_MS",
        "MBX_LOG_DIR",
        "MBX_LOG_LEVEL",
        "MBX_LOG_FILE_NAME",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def load_fixture_text(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


def load_fixture(name: str) -> Any:
    return json.loads(load_fixture_text(name))


@pytest.fixture
def fixture_text():
    return load_fixture_text
