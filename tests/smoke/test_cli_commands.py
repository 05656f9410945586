"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import os
import shlex
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli_command(command: str, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    The environment (including the isolated ASSESSMENT_* variables set by
    conftest) is inherited by the child process.

    Args:
        command: The command to run (after 'python -m assessment_core.cli')
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    full_command = [sys.executable, "-m", "assessment_core.cli", *shlex.split(command)]

    result = subprocess.run(
        full_command,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
        env={**os.environ, "COLUMNS": "200"},
    )

    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def pool_file(tmp_path):
    pool = [
        {"id": f"e{i}", "options": ["a", "b"], "correctAnswer": "a", "difficulty": "Easy", "topicId": "algebra"}
        for i in range(4)
    ]
    pool += [
        {"id": f"m{i}", "options": ["a", "b"], "correctAnswer": "a", "difficulty": "Medium", "topicId": "geometry"}
        for i in range(3)
    ]
    pool += [
        {"id": f"h{i}", "options": ["a", "b"], "correctAnswer": "a", "difficulty": "Hard", "topicId": "calculus"}
        for i in range(3)
    ]
    path = tmp_path / "pool.json"
    path.write_text(json.dumps(pool))
    return path


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Policy documents on disk: strict global proctoring, one exam override."""
    root = tmp_path / "policies"
    (root / "adminConfig" / "selectionRulesOverrides" / "exams").mkdir(parents=True)
    (root / "adminConfig" / "quizControls.json").write_text(
        json.dumps(
            {
                "global": {
                    "proctoring": {
                        "enabled": True,
                        "detectTabSwitch": True,
                        "maxTabSwitches": 10,
                        "violationThreshold": 2,
                        "actionOnThreshold": "autosubmit",
                    }
                }
            }
        )
    )
    (root / "adminConfig" / "selectionRulesOverrides" / "exams" / "exam-7.json").write_text(
        json.dumps({"overrides": {"difficultyMix": {"hard": 40}, "forcePublishedOnly": False}})
    )
    monkeypatch.setenv("ASSESSMENT_CONFIG_DIR", str(root))
    return root


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should list every command."""
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        for command in ("rules", "controls", "select", "grade", "review", "due", "drill"):
            assert command in stdout

    @pytest.mark.parametrize("command", ["select", "review", "drill"])
    def test_command_help(self, command):
        code, stdout, stderr = run_cli_command(f"{command} --help")
        assert code == 0, f"{command} help failed: {stderr}"


class TestPolicyCommands:
    """Test rules and controls."""

    def test_default_rules_json(self):
        code, stdout, stderr = run_cli_command("rules --json")

        assert code == 0, f"rules failed: {stderr}"
        document = json.loads(stdout)
        assert document["difficultyMix"] == {"easy": 30, "medium": 50, "hard": 20}
        assert document["forcePublishedOnly"] is True

    def test_override_applied_but_hard_constraints_kept(self, config_dir):
        code, stdout, stderr = run_cli_command("rules --json --assessment exam-7")

        assert code == 0, f"rules failed: {stderr}"
        document = json.loads(stdout)
        assert document["difficultyMix"] == {"easy": 30, "medium": 50, "hard": 40}
        assert document["forcePublishedOnly"] is True

    def test_controls_table(self, config_dir):
        code, stdout, stderr = run_cli_command("controls")

        assert code == 0, f"controls failed: {stderr}"
        assert "proctoring.violationThreshold" in stdout


class TestSelectAndGrade:
    """Test select and grade against a pool file."""

    def test_select_reports_short_pool(self, pool_file):
        code, stdout, stderr = run_cli_command(f"select {pool_file} --count 10 --seed 42")

        assert code == 0, f"select failed: {stderr}"
        assert "Selected 8 of 10" in stdout
        assert "Pool exhausted" in stdout

    def test_select_missing_pool(self, tmp_path):
        code, stdout, stderr = run_cli_command(f"select {tmp_path / 'missing.json'}")

        assert code == 1
        assert "File not found" in stdout

    def test_grade_updates_profile(self, pool_file, tmp_path):
        answers = tmp_path / "answers.json"
        answers.write_text(
            json.dumps(
                [
                    {"questionId": "e0", "selectedOption": "a", "confidenceLevel": 3},
                    {"questionId": "m0", "selectedOption": "b", "timeSpentSeconds": 80},
                    {"questionId": "h0", "selectedOption": None},
                ]
            )
        )

        code, stdout, stderr = run_cli_command(f"grade {pool_file} {answers} --learner u1")

        assert code == 0, f"grade failed: {stderr}"
        assert "Score:" in stdout
        assert "1 correct, 1 wrong, 1 skipped" in stdout
        assert "Weak topics" in stdout


class TestReviewCommands:
    """Test review and due."""

    def test_review_then_due(self):
        code, stdout, stderr = run_cli_command("review u1 q-17 again")
        assert code == 0, f"review failed: {stderr}"
        assert "next in 0d" in stdout

        code, stdout, stderr = run_cli_command("due u1")
        assert code == 0, f"due failed: {stderr}"
        assert "q-17" in stdout

    def test_first_good_review(self):
        code, stdout, stderr = run_cli_command("review u1 q-1 good")

        assert code == 0, f"review failed: {stderr}"
        assert "rated good: next in 1d" in stdout

    def test_invalid_rating(self):
        code, stdout, stderr = run_cli_command("review u1 q-1 7")
        assert code == 2

    def test_nothing_due(self):
        code, stdout, stderr = run_cli_command("due nobody")

        assert code == 0
        assert "Nothing due." in stdout


class TestDrill:
    """Test the proctoring drill."""

    def test_default_script(self):
        code, stdout, stderr = run_cli_command("drill")

        assert code == 0, f"drill failed: {stderr}"
        assert "SESSION_START" in stdout
        assert "Closed: manual_submit" in stdout

    def test_threshold_autosubmit(self, config_dir):
        code, stdout, stderr = run_cli_command("drill --script hide_tab,show_tab,hide_tab,hide_tab")

        assert code == 0, f"drill failed: {stderr}"
        assert "THRESHOLD_REACHED" in stdout
        assert "Closed: threshold_autosubmit" in stdout
        assert "skipping hide_tab" in stdout

    def test_unknown_step(self):
        code, stdout, stderr = run_cli_command("drill --script hide_tab,teleport")

        assert code == 2
        assert "teleport" in stdout
