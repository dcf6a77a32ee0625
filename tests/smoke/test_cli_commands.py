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
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture
def cli_env(tmp_path):
    """Isolated database, no labeling key."""
    env = dict(os.environ)
    env.update({
        "DATABASE_URL": f"sqlite:///{tmp_path / 'cli.db'}",
        "LABEL_API_KEY": "",
        "LABEL_FALLBACK_API_KEY": "",
        "LOG_LEVEL": "WARNING",
    })
    return env


@pytest.fixture
def input_files(tmp_path, sample_cards, sample_embeddings):
    cards = [{"id": card_id, **record} for card_id, record in sample_cards.items()]
    cards_file = tmp_path / "cards.json"
    embeddings_file = tmp_path / "embeddings.json"
    cards_file.write_text(json.dumps(cards), encoding="utf-8")
    embeddings_file.write_text(json.dumps(sample_embeddings), encoding="utf-8")
    return cards_file, embeddings_file


def run_cli_command(args: list[str], env: dict[str, str], timeout: int = 60) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        args: Arguments after 'python -m cardgraph.cli'
        env: Process environment
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    result = subprocess.run(
        [sys.executable, "-m", "cardgraph.cli", *args],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help and info commands work."""

    def test_main_help(self, cli_env):
        """Main help should display without errors."""
        code, stdout, stderr = run_cli_command(["--help"], cli_env)

        assert code == 0, f"Help failed: {stderr}"
        assert "build" in stdout
        assert "clear-cache" in stdout

    def test_version(self, cli_env):
        code, stdout, stderr = run_cli_command(["version"], cli_env)

        assert code == 0, f"Version failed: {stderr}"
        assert "1.0.0" in stdout

    def test_config_warns_without_key(self, cli_env):
        code, stdout, stderr = run_cli_command(["config"], cli_env)

        assert code == 0, f"Config failed: {stderr}"
        assert "knn.k" in stdout
        assert "Labeling not configured" in stdout


class TestBuildCommand:
    """Test the build pipeline end to end without a labeling endpoint."""

    def test_build_without_labels(self, cli_env, input_files, tmp_path):
        cards_file, embeddings_file = input_files
        output = tmp_path / "edges.json"

        code, stdout, stderr = run_cli_command(
            ["build", str(cards_file), str(embeddings_file), "-k", "1", "--no-label", "-o", str(output)],
            cli_env,
        )

        assert code == 0, f"Build failed: {stderr}"
        edges = json.loads(output.read_text(encoding="utf-8"))
        assert {tuple(sorted((e["source"], e["target"]))) for e in edges} == {("ip", "osi"), ("tcp", "udp")}
        assert all(e["relation"] is None for e in edges)

    def test_build_without_key_defaults_labels(self, cli_env, input_files, tmp_path):
        cards_file, embeddings_file = input_files
        output = tmp_path / "edges.json"

        code, stdout, stderr = run_cli_command(
            ["build", str(cards_file), str(embeddings_file), "-k", "1", "-o", str(output)],
            cli_env,
        )

        assert code == 0, f"Build failed: {stderr}"
        assert {e["relation"] for e in json.loads(output.read_text(encoding="utf-8"))} == {"same-topic"}

    def test_clear_cache_after_build(self, cli_env, input_files):
        cards_file, embeddings_file = input_files
        run_cli_command(["build", str(cards_file), str(embeddings_file), "-k", "1", "--no-label"], cli_env)

        code, stdout, stderr = run_cli_command(["clear-cache"], cli_env)

        assert code == 0, f"Clear failed: {stderr}"
        assert "Removed 1" in stdout

    def test_missing_file_fails(self, cli_env, tmp_path):
        code, stdout, stderr = run_cli_command(
            ["build", str(tmp_path / "nope.json"), str(tmp_path / "nope2.json")],
            cli_env,
        )

        assert code == 1
        assert "File not found" in stdout

    def test_empty_cards_fails(self, cli_env, tmp_path):
        cards_file = tmp_path / "cards.json"
        embeddings_file = tmp_path / "embeddings.json"
        cards_file.write_text("[]", encoding="utf-8")
        embeddings_file.write_text("{}", encoding="utf-8")

        code, stdout, stderr = run_cli_command(["build", str(cards_file), str(embeddings_file)], cli_env)

        assert code == 1
