import pytest

from compliance_console.processing import cli
from compliance_console.processing.models import ProcessingState
from tests.fixtures.status_fakes import make_snapshot


def test_print_snapshot(capsys):
    snapshot = make_snapshot(
        ProcessingState.COMPLETED,
        matched=["Rapid Velocity"],
        passed=["Round Amount", "Dormant Account"],
    )

    cli.print_snapshot(snapshot)

    out = capsys.readouterr().out
    assert "Status: Completed" in out
    assert "Rules Matched: 1" in out
    assert "Rules Passed: 2" in out
    assert "[MATCH] Rapid Velocity" in out
    assert "[pass]  Dormant Account" in out


def test_usage_without_arguments(monkeypatch, capsys):
    monkeypatch.setattr("sys.argv", ["compliance-monitor"])

    assert cli.main() == 1
    assert "Usage" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_watch_with_mock_client(monkeypatch, capsys):
    monkeypatch.setenv("STATUS_CLIENT_TYPE", "mock")
    cli.get_settings.cache_clear()
    try:
        code = await cli.watch_command("7", poll_interval_ms=10, max_attempts=50)
    finally:
        cli.get_settings.cache_clear()

    out = capsys.readouterr().out
    assert "Monitoring transaction #7" in out
    assert "Outcome: completed" in out
    assert code == 0
