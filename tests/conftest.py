import pytest

from app.settings import settings
from tests.fakes import PipelineKit


@pytest.fixture
def kit():
    return PipelineKit()


@pytest.fixture(autouse=True)
def deterministic_settings(monkeypatch):
    monkeypatch.setattr(settings, "INTENT_LLM_ENABLED", False)
    monkeypatch.setattr(settings, "COMPOSER_MODE", "template")
    monkeypatch.setattr(settings, "UNKNOWN_MEDICAL_TIER", "prescription")
