"""
Общие фикстуры тестов.

Переменные окружения выставляются до импорта invites:
settings создаётся при импорте и требует INVITES_API_TOKEN.
"""

import os
import sys
import tempfile
from pathlib import Path

# Добавляем корневую папку проекта в путь
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("INVITES_API_TOKEN", "test-token")
os.environ.setdefault("INVITES_DATA_DIR", tempfile.mkdtemp(prefix="invites-"))
os.environ.setdefault("INVITES_OSD_ENABLED", "false")

import pytest

from invites.config import settings

API_TOKEN = "test-token"


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Каждый тест работает с пустым хранилищем."""
    monkeypatch.setattr(settings, "data_dir", tmp_path)
    monkeypatch.setattr(settings, "api_token", API_TOKEN)
    return tmp_path


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {API_TOKEN}"}
