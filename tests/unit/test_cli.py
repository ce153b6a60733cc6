"""CLI command tests for TetherDB."""

import json
import os
import tempfile
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, text
from typer.testing import CliRunner

from tetherdb.cli.main import app

runner = CliRunner()


@pytest.fixture
def temp_db(blog_tables: list[str]) -> Generator[str, None, None]:
    """Create a temporary SQLite database file with the example tables."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    url = f"sqlite:///{db_path}"

    engine = create_engine(url)
    with engine.begin() as conn:
        for statement in blog_tables:
            conn.execute(text(statement))
    engine.dispose()

    yield url
    # Cleanup
    if os.path.exists(db_path):
        os.remove(db_path)


def _create_author_relation(url: str) -> None:
    result = runner.invoke(
        app,
        [
            "-d",
            url,
            "--json",
            "relations",
            "create",
            "articles",
            "author_id",
            "--related",
            "authors",
            "--on-delete",
            "SET_NULL",
            "--meta",
            '{"one_field": "articles"}',
        ],
    )
    assert result.exit_code == 0, f"Failed with: {result.stdout}"


class TestVersionCommand:
    """Test the version command."""

    def test_version_output(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "TetherDB v" in result.stdout


class TestDatabaseCommands:
    """Test commands that inspect the database."""

    def test_init(self, temp_db: str) -> None:
        result = runner.invoke(app, ["-d", temp_db, "--json", "init"])
        assert result.exit_code == 0, f"Failed with: {result.stdout}"
        assert json.loads(result.stdout)["success"] is True

    def test_collections(self, temp_db: str) -> None:
        result = runner.invoke(app, ["-d", temp_db, "--json", "collections"])
        assert result.exit_code == 0
        data = {c["collection"]: c for c in json.loads(result.stdout)}
        assert set(data) == {"articles", "article_tags", "authors", "tags"}
        assert data["articles"]["primary"] == "id"
        assert data["articles"]["fields"]["author_id"]["db_type"] == "int"
        # Composite keys can't be referenced by one column
        assert data["article_tags"]["primary"] is None


class TestRelationsCommands:
    """Test relation management commands."""

    def test_create(self, temp_db: str) -> None:
        result = runner.invoke(
            app,
            [
                "-d",
                temp_db,
                "--json",
                "relations",
                "create",
                "articles",
                "author_id",
                "-r",
                "authors",
            ],
        )
        assert result.exit_code == 0, f"Failed with: {result.stdout}"
        data = json.loads(result.stdout)
        assert data["success"] is True
        assert data["related_collection"] == "authors"
        assert data["constraint_name"] == "articles_author_id_foreign"

    def test_list_json(self, temp_db: str) -> None:
        _create_author_relation(temp_db)

        result = runner.invoke(app, ["-d", temp_db, "--json", "relations", "list", "articles"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [r["field"] for r in data] == ["author_id"]
        assert data[0]["schema"]["on_delete"] == "SET_NULL"
        assert data[0]["meta"]["one_field"] == "articles"

    def test_list_table(self, temp_db: str) -> None:
        _create_author_relation(temp_db)

        result = runner.invoke(app, ["-d", temp_db, "relations", "list"])
        assert result.exit_code == 0
        assert "Relations (4 total)" in result.stdout

    def test_get(self, temp_db: str) -> None:
        _create_author_relation(temp_db)

        result = runner.invoke(
            app, ["-d", temp_db, "--json", "relations", "get", "articles", "author_id"]
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["related_collection"] == "authors"
        assert data["schema"]["constraint_name"] == "articles_author_id_foreign"

    def test_get_missing(self, temp_db: str) -> None:
        result = runner.invoke(
            app, ["-d", temp_db, "--json", "relations", "get", "articles", "title"]
        )
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] == "ForbiddenError"

    def test_create_invalid_payload(self, temp_db: str) -> None:
        result = runner.invoke(
            app, ["-d", temp_db, "--json", "relations", "create", "articles", "id", "-r", "authors"]
        )
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] == "InvalidPayloadError"
        assert data["message"] == 'Field "id" in collection "articles" is a primary key'

    def test_create_bad_meta_json(self, temp_db: str) -> None:
        result = runner.invoke(
            app,
            ["-d", temp_db, "--json", "relations", "create", "articles", "editor_id", "-m", "{"],
        )
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] == "ValueError"
        assert "Invalid meta JSON" in data["message"]

    def test_create_meta_from_file(self, temp_db: str, tmp_path) -> None:
        meta_file = tmp_path / "meta.json"
        meta_file.write_text(json.dumps({"one_deselect_action": "delete"}))

        result = runner.invoke(
            app,
            [
                "-d",
                temp_db,
                "--json",
                "relations",
                "create",
                "articles",
                "editor_id",
                "-m",
                f"@{meta_file}",
            ],
        )
        assert result.exit_code == 0, f"Failed with: {result.stdout}"

        result = runner.invoke(
            app, ["-d", temp_db, "--json", "relations", "get", "articles", "editor_id"]
        )
        assert json.loads(result.stdout)["meta"]["one_deselect_action"] == "delete"

    def test_update(self, temp_db: str) -> None:
        _create_author_relation(temp_db)

        result = runner.invoke(
            app,
            [
                "-d",
                temp_db,
                "--json",
                "relations",
                "update",
                "articles",
                "author_id",
                "--on-delete",
                "cascade",
            ],
        )
        assert result.exit_code == 0, f"Failed with: {result.stdout}"
        assert json.loads(result.stdout)["on_delete"] == "CASCADE"

    def test_delete(self, temp_db: str) -> None:
        _create_author_relation(temp_db)

        result = runner.invoke(
            app, ["-d", temp_db, "--json", "relations", "delete", "articles", "author_id"]
        )
        assert result.exit_code == 0
        assert json.loads(result.stdout)["success"] is True

        result = runner.invoke(app, ["-d", temp_db, "--json", "relations", "list", "articles"])
        assert json.loads(result.stdout) == []

    def test_delete_requires_confirmation(self, temp_db: str) -> None:
        _create_author_relation(temp_db)

        result = runner.invoke(
            app, ["-d", temp_db, "relations", "delete", "articles", "author_id"], input="n\n"
        )
        assert result.exit_code != 0

        result = runner.invoke(
            app, ["-d", temp_db, "--json", "relations", "get", "articles", "author_id"]
        )
        assert result.exit_code == 0

    def test_database_from_environment(self, temp_db: str) -> None:
        result = runner.invoke(
            app, ["--json", "relations", "list", "articles"], env={"TETHERDB_URL": temp_db}
        )
        assert result.exit_code == 0
        assert json.loads(result.stdout) == []
