from cliptrail import health
from cliptrail.config import get_config_path, load_config
from cliptrail.storage import HistoryFile

from conftest import make_entry


def test_defaults_when_nothing_configured(isolated_home):
    assert health.check_config() == ("-", "Using defaults")
    assert health.check_history() == ("✓", "Empty (no history yet)")
    assert health.check_webhook(load_config()) == ("-", "Not configured")


def test_history_counts(isolated_home):
    HistoryFile().save([make_entry("a", minutes=0, pinned=True), make_entry("b", minutes=1)])
    assert health.check_history() == ("✓", "OK (2 entries, 1 pinned)")


def test_bad_config_is_reported(isolated_home):
    path = get_config_path()
    path.parent.mkdir(parents=True)
    path.write_text('[[rules]]\npattern = "x"\nfield = "nowhere"\naction = "ignore"\n')

    status, message = health.check_config()
    assert status == "✗"
    assert message.startswith("Error:")


def test_invalid_webhook_url(isolated_home):
    path = get_config_path()
    path.parent.mkdir(parents=True)
    path.write_text('[events]\nwebhook_url = "ftp://example.com"\n')
    assert health.check_webhook(load_config())[0] == "✗"


def test_report_format():
    report = health.format_health_report({"Config": ("✓", "OK")})
    assert report.splitlines()[-1] == "✓ Config: OK"


def test_malformed_toml_is_reported_not_raised(isolated_home, monkeypatch):
    monkeypatch.setattr(health, "check_clipboard", lambda: ("✓", "OK"))
    path = get_config_path()
    path.parent.mkdir(parents=True)
    path.write_text("[events\nwebhook_url = \n")

    checks = health.run_health_check()

    assert checks["Config"][0] == "✗"
    assert checks["Webhook"] == ("-", "Not configured")
    assert "✗ Config: Error:" in health.format_health_report(checks)
