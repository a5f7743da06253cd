import pytest

from cliptrail import cli
from cliptrail.storage import HistoryFile, SettingsFile

from conftest import make_entry


@pytest.fixture
def run_cli(isolated_home, monkeypatch):
    def _run(*args: str) -> int:
        monkeypatch.setattr("sys.argv", ["cliptrail", *args])
        return cli.main()

    return _run


@pytest.fixture
def saved_entries(isolated_home):
    entries = [
        make_entry("first saved entry", minutes=0),
        make_entry("second saved entry", minutes=1),
    ]
    HistoryFile().save(entries)
    return entries


def test_help_and_version(run_cli, capsys):
    assert run_cli() == 0
    assert "cliptrail watch" in capsys.readouterr().out
    assert run_cli("--version") == 0
    assert capsys.readouterr().out.startswith("cliptrail ")


def test_unknown_command(run_cli, capsys):
    assert run_cli("frobnicate") == 1
    assert "Unknown command" in capsys.readouterr().err


def test_list(run_cli, saved_entries, capsys):
    assert run_cli("list") == 0
    out = capsys.readouterr().out
    assert out.index("second saved entry") < out.index("first saved entry")


def test_pin_accepts_hyphenated_id(run_cli, saved_entries, capsys):
    from cliptrail.surfacing import format_id

    entry = saved_entries[0]
    assert run_cli("pin", format_id(entry.id)) == 0

    [pinned] = [e for e in HistoryFile().load() if e.pinned]
    assert pinned.id == entry.id


def test_pin_unknown_id(run_cli, saved_entries, capsys):
    assert run_cli("pin", "404") == 1
    assert "Not found" in capsys.readouterr().err


def test_delete(run_cli, saved_entries):
    assert run_cli("delete", saved_entries[1].id) == 0
    assert [e.text for e in HistoryFile().load()] == ["first saved entry"]


def test_limit_zero_is_rejected(run_cli, saved_entries, capsys):
    assert run_cli("limit", "0") == 1
    assert "Error" in capsys.readouterr().err
    assert SettingsFile().load() is None


def test_limit_is_saved(run_cli, saved_entries, capsys):
    assert run_cli("limit", "1") == 0
    assert SettingsFile().load()[0].limit == 1
    assert [e.text for e in HistoryFile().load()] == ["second saved entry"]

    assert run_cli("limit") == 0
    assert capsys.readouterr().out.strip().endswith("1")


def test_clear_keep_pinned(run_cli, saved_entries, capsys):
    run_cli("pin", saved_entries[0].id)
    assert run_cli("clear", "--keep-pinned") == 0
    assert "Cleared 1 entries (1 pinned kept)." in capsys.readouterr().out
