"""Tests for the command-line interface."""

import pytest
from rich.console import Console
from typer.testing import CliRunner

from repository_tracker import __version__
from repository_tracker.cli import app
from repository_tracker.core.models import Dataset, DatasetMetadata
from repository_tracker.storage.dataset import DatasetStore

from conftest import NOW, make_bundle

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Render tables wide enough that cell values are not truncated."""
    monkeypatch.setattr("repository_tracker.cli.console", Console(width=200))


@pytest.fixture
def dataset_file(tmp_path, sample_record):
    """Dataset with one risky and one quiet repository."""
    quiet = sample_record.with_changes(
        repository="quiet",
        pod="Quiet-Pod",
        engineering_manager="",
        vulnerabilities=make_bundle(),
    )
    path = tmp_path / "repositories.json"
    DatasetStore(path).save(
        Dataset(
            metadata=DatasetMetadata(last_updated="2024-06-01T12:00:00.000Z", organizations=["acme"]),
            repositories=[quiet, sample_record],
        ),
        now=NOW,
    )
    return path


class TestCLI:
    """Test CLI commands."""

    def test_version(self):
        """Test --version prints the version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"v{__version__}" in result.stdout

    def test_init_config(self, tmp_path):
        """Test init-config writes a config file."""
        path = tmp_path / "config.yaml"

        result = runner.invoke(app, ["init-config", str(path)])

        assert result.exit_code == 0
        assert "sync:" in path.read_text()

    def test_init_config_keeps_existing(self, tmp_path):
        """Test declining the overwrite prompt keeps the file."""
        path = tmp_path / "config.yaml"
        path.write_text("mine\n")

        result = runner.invoke(app, ["init-config", str(path)], input="n\n")

        assert result.exit_code == 0
        assert path.read_text() == "mine\n"

    def test_report_ranks_by_risk(self, dataset_file):
        """Test the report lists the riskiest repository first."""
        result = runner.invoke(app, ["report", "--data-file", str(dataset_file), "--top", "1"])

        assert result.exit_code == 0
        assert "acme/payments-api" in result.stdout
        assert "acme/quiet" not in result.stdout
        assert "CRITICAL" in result.stdout
        assert "138" in result.stdout

    def test_report_backfills_managers(self, dataset_file):
        """Test the pod manager map fills empty managers in the report."""
        managers = dataset_file.parent / "pod-managers.yaml"
        managers.write_text("Quiet-Pod: Lee Park\nPayments-Core: Someone Else\n")

        result = runner.invoke(app, [
            "report",
            "--data-file", str(dataset_file),
            "--pod-managers", str(managers),
        ])

        assert result.exit_code == 0
        assert "Lee Park" in result.stdout
        assert "Dana Smith" in result.stdout
        assert "Someone Else" not in result.stdout

    def test_report_uses_configured_paths(self, dataset_file, tmp_path):
        """Test the dataset and manager map locations come from the config file."""
        managers = tmp_path / "owners" / "managers.txt"
        managers.parent.mkdir()
        managers.write_text("Quiet-Pod: Lee Park\n")
        config = tmp_path / "config.yaml"
        config.write_text(
            "output:\n"
            f"  data_file: {dataset_file}\n"
            f"  pod_managers_file: {managers}\n"
        )

        result = runner.invoke(app, ["report", "--config", str(config)])

        assert result.exit_code == 0
        assert "acme/quiet" in result.stdout
        assert "Lee Park" in result.stdout

    def test_report_missing_dataset(self, tmp_path):
        """Test the report fails cleanly without a dataset."""
        result = runner.invoke(app, ["report", "--data-file", str(tmp_path / "missing.json")])

        assert result.exit_code == 1

    def test_report_malformed_dataset(self, tmp_path):
        """Test the report fails cleanly on an invalid dataset."""
        path = tmp_path / "repositories.json"
        path.write_text("[]")

        result = runner.invoke(app, ["report", "--data-file", str(path)])

        assert result.exit_code == 1

    def test_sync_without_organization(self, tmp_path, monkeypatch):
        """Test sync exits with an error when no organization is configured."""
        for name in ("ORGS_CONFIG", "ORGS_LIST", "ORG_NAME"):
            monkeypatch.delenv(name, raising=False)

        result = runner.invoke(app, [
            "sync",
            "--config", str(tmp_path / "absent.yaml"),
            "--data-file", str(tmp_path / "repositories.json"),
            "--no-progress",
        ])

        assert result.exit_code == 1
        assert "Organization configuration required" in result.stdout
        assert not (tmp_path / "repositories.json").exists()
