"""Tests for clinicore CLI commands."""

from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from clinicore.auth import JWTService
from clinicore.cli.main import cli

METADATA_PATH = Path(__file__).resolve().parents[2] / "metadata"
SECRET = "test-secret-key-that-is-long-enough-for-hs256"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def repo_metadata(monkeypatch):
    """Point the CLI at the committed metadata directory."""
    monkeypatch.setenv("CLINICORE_METADATA_PATH", str(METADATA_PATH))


def write_metadata(tmp_path: Path, monkeypatch, *documents: dict) -> Path:
    entities = tmp_path / "metadata" / "entities"
    entities.mkdir(parents=True)
    for i, doc in enumerate(documents):
        (entities / f"entity_{i}.yaml").write_text(yaml.dump(doc))
    monkeypatch.setenv("CLINICORE_METADATA_PATH", str(tmp_path / "metadata"))
    return entities


class TestMetadataValidate:
    def test_validate_succeeds(self, runner, repo_metadata):
        result = runner.invoke(cli, ["metadata", "validate"])
        assert result.exit_code == 0, result.output
        assert "All metadata is valid" in result.output

    def test_validate_lists_entities_and_routes(self, runner, repo_metadata):
        result = runner.invoke(cli, ["metadata", "validate", "--strict"])
        assert "Loaded 10 entities" in result.output
        assert "Medication (9 fields, route: /api/medication)" in result.output

    def test_schema_errors_fail(self, runner, tmp_path, monkeypatch):
        write_metadata(tmp_path, monkeypatch, {"entity": "Ward"})
        result = runner.invoke(cli, ["metadata", "validate"])
        assert result.exit_code == 1
        assert "schema error(s) found" in result.output

    def test_semantic_errors_fail(self, runner, tmp_path, monkeypatch):
        write_metadata(
            tmp_path,
            monkeypatch,
            {
                "entity": "Bed",
                "fields": [
                    {"name": "id", "type": "uuid", "primaryKey": True},
                    {"name": "wardId", "type": "relation", "relation": {"entity": "Ward"}},
                ],
            },
        )
        result = runner.invoke(cli, ["metadata", "validate"])
        assert result.exit_code == 1
        assert "Semantic validation failed" in result.output

    def test_strict_fails_on_warnings(self, runner, tmp_path, monkeypatch):
        write_metadata(tmp_path, monkeypatch)
        assert runner.invoke(cli, ["metadata", "validate"]).exit_code == 0
        assert runner.invoke(cli, ["metadata", "validate", "--strict"]).exit_code == 1

    def test_single_file(self, runner, repo_metadata):
        result = runner.invoke(
            cli, ["metadata", "validate", "--path", str(METADATA_PATH / "entities" / "medication.yaml")]
        )
        assert result.exit_code == 0, result.output
        assert "Loaded" not in result.output

    def test_missing_directory(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("CLINICORE_METADATA_PATH", str(tmp_path / "nowhere"))
        result = runner.invoke(cli, ["metadata", "validate"])
        assert result.exit_code == 1


class TestDbInit:
    def test_creates_tables(self, runner, repo_metadata, tmp_path):
        db_file = tmp_path / "data" / "clinic.db"
        result = runner.invoke(cli, ["db", "init", "--url", f"sqlite:///{db_file}"])
        assert result.exit_code == 0, result.output
        assert "Initialized 10 tables" in result.output
        assert "invoice_line" in result.output
        assert db_file.exists()

    def test_is_idempotent(self, runner, repo_metadata, tmp_path):
        url = f"sqlite:///{tmp_path / 'clinic.db'}"
        assert runner.invoke(cli, ["db", "init", "--url", url]).exit_code == 0
        assert runner.invoke(cli, ["db", "init", "--url", url]).exit_code == 0

    def test_unsupported_url(self, runner, repo_metadata):
        result = runner.invoke(cli, ["db", "init", "--url", "mysql://localhost/db"])
        assert result.exit_code == 1


class TestAuthToken:
    def test_issues_decodable_token(self, runner, monkeypatch):
        monkeypatch.setenv("CLINICORE_SECRET_KEY", SECRET)
        result = runner.invoke(cli, ["auth", "token", "--user", "nurse-1", "--role", "manager"])
        assert result.exit_code == 0, result.output

        claims = JWTService(SECRET).verify_token(result.output.strip())
        assert claims.user_id == "nurse-1"
        assert claims.role == "manager"

    def test_rejects_unknown_role(self, runner):
        result = runner.invoke(cli, ["auth", "token", "--user", "nurse-1", "--role", "root"])
        assert result.exit_code != 0
