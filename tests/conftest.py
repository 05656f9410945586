"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from assessment_core.config import get_settings
from assessment_core.core.models import Difficulty, Question
from assessment_core.rules.types import ProctoringConfig, QuizControls


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point settings at a throwaway database and no config store."""
    monkeypatch.setenv("ASSESSMENT_STATE_DB_PATH", str(tmp_path / "state.db"))
    monkeypatch.delenv("ASSESSMENT_CONFIG_STORE_URL", raising=False)
    monkeypatch.delenv("ASSESSMENT_CONFIG_DIR", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


def make_question(qid, difficulty=Difficulty.MEDIUM, topic="t1", **kwargs):
    """Build a published question with sensible defaults."""
    return Question(
        id=qid,
        text=f"Question {qid}",
        options=("a", "b", "c", "d"),
        correct_answer=kwargs.pop("correct_answer", "a"),
        difficulty=difficulty,
        topic_id=topic,
        **kwargs,
    )


@pytest.fixture
def sample_pool():
    """Pool of 10 questions: 4 easy, 3 medium, 3 hard."""
    pool = [make_question(f"e{i}", Difficulty.EASY, topic="algebra") for i in range(4)]
    pool += [make_question(f"m{i}", Difficulty.MEDIUM, topic="geometry") for i in range(3)]
    pool += [make_question(f"h{i}", Difficulty.HARD, topic="calculus") for i in range(3)]
    return pool


@pytest.fixture
def proctoring_config():
    """Everything enabled, threshold 3, warn on threshold."""
    return ProctoringConfig(
        enabled=True,
        fullscreen_required=True,
        block_back_navigation=True,
        disable_copy_paste=True,
        disable_right_click=True,
        disable_text_selection=True,
        detect_tab_switch=True,
        detect_window_blur=True,
        violation_threshold=3,
    )


@pytest.fixture
def quiz_controls(proctoring_config):
    """Quiz controls wrapping the proctoring fixture."""
    return QuizControls(proctoring=proctoring_config)
