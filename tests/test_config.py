from datetime import timedelta

import pytest
from pydantic import ValidationError

from cliptrail.config import (
    get_config_path,
    get_history_path,
    history_config_from,
    load_config,
    poll_interval_from,
    rules_from,
)
from cliptrail.pipeline import build_pipeline, load_settings
from cliptrail.storage import SettingsFile

from conftest import FakeClipboard, FakeWindow, RecordingSink, make_entry

CONFIG_TOML = """
[history]
limit = 25
dedup_window_minutes = 2

[capture]
poll_interval_ms = 250

[[rules]]
pattern = "^https://github\\\\.com"
field = "url"
action = "tag"
tag = "github"

[[rules]]
pattern = "1Password"
field = "app"
action = "ignore"
"""


def write_config(text: str) -> None:
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


def test_defaults_without_config_file(isolated_home):
    config = load_config()
    history = history_config_from(config)
    assert history.limit == 100
    assert history.dedup_window == timedelta(minutes=5)
    assert rules_from(config) == []
    assert poll_interval_from(config) == 0.5


def test_config_file_overrides_defaults(isolated_home):
    write_config(CONFIG_TOML)
    config = load_config()

    history = history_config_from(config)
    assert history.limit == 25
    assert history.min_text_length == 3  # default kept
    assert history.dedup_window == timedelta(minutes=2)
    assert poll_interval_from(config) == 0.25

    rules = rules_from(config)
    assert [r.action for r in rules] == ["tag", "ignore"]
    assert rules[0].pattern == r"^https://github\.com"


def test_zero_limit_in_config_is_invalid(isolated_home):
    write_config("[history]\nlimit = 0\n")
    with pytest.raises(ValidationError):
        history_config_from(load_config())


def test_settings_file_wins_over_config(isolated_home):
    write_config(CONFIG_TOML)
    config = load_config()
    settings = SettingsFile()
    settings.save(history_config_from(config).model_copy(update={"limit": 3}), [])

    history, rules = load_settings(config, settings)
    assert history.limit == 3
    assert rules == []


def test_build_pipeline_loads_history_and_persists_changes(isolated_home):
    from cliptrail.storage import HistoryFile

    HistoryFile().save([make_entry("kept from last session")])

    pipeline = build_pipeline(
        clipboard=FakeClipboard("brand new copy"),
        window=FakeWindow(),
        sink=RecordingSink(),
    )
    assert [e.text for e in pipeline.list()] == ["kept from last session"]

    pipeline.tick()
    pipeline.set_limit(1)

    assert [e.text for e in HistoryFile().load()] == ["brand new copy"]
    assert SettingsFile().load()[0].limit == 1
    assert get_history_path().exists()
