import pytest
from click.testing import CliRunner

from queuedesk.cli import cli


@pytest.fixture
def invoke(tmp_path):
    runner = CliRunner()
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"

    def _invoke(*args: str):
        return runner.invoke(cli, ["--database-url", database_url, *args])

    result = _invoke("init-db")
    assert result.exit_code == 0, result.output
    assert "MAIN, NORTH, SOUTH" in result.output
    return _invoke


def test_init_db_is_repeatable(invoke):
    result = invoke("init-db")
    assert result.exit_code == 0
    assert "created branches: none" in result.output


def test_branch_management(invoke):
    result = invoke("add-branch", "east", "East Branch", "d", "--order", "4")
    assert result.exit_code == 0, result.output
    assert "Created branch EAST (D)" in result.output

    assert invoke("add-branch", "EAST", "East Again", "E").exit_code == 1
    assert invoke("add-branch", "WEST", "West Branch", "D1").exit_code == 2

    assert invoke("set-active", "south", "--inactive").exit_code == 0
    listing = invoke("branches").output
    assert "EAST" in listing
    assert "inactive" in next(line for line in listing.splitlines() if line.startswith("SOUTH"))

    # Closed branches take no registrations
    result = invoke("seed-sample", "SOUTH", "--count", "1")
    assert result.exit_code == 1
    assert "SOUTH" in result.output


def test_seed_stats_and_reset(invoke):
    result = invoke("seed-sample", "MAIN", "--count", "3", "--category", "Model Y", "--category", "Model 3")
    assert result.exit_code == 0, result.output
    assert "A-001, A-002, A-003" in result.output

    result = invoke("stats", "MAIN")
    assert result.exit_code == 0, result.output
    assert "Issued:     3/" in result.output
    assert "Waiting:    3" in result.output

    result = invoke("reset-queue", "MAIN", "--yes")
    assert result.exit_code == 0, result.output
    assert "next number: A-001" in result.output

    assert "A-001" in invoke("seed-sample", "MAIN", "--count", "1").output


def test_reset_requires_confirmation(invoke):
    result = invoke("reset-queue", "MAIN")
    assert result.exit_code == 1
