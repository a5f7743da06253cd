import asyncio

import pytest

from cliptrail_mcp import server

from conftest import make_entry


@pytest.fixture
def pipeline(make_pipeline, isolated_home):
    pipeline = make_pipeline()
    pipeline.store.replace_all([
        make_entry("https://docs.python.org/3/", minutes=1),
        make_entry("some note text", minutes=0),
    ])
    server.set_pipeline(pipeline)
    yield pipeline
    server.set_pipeline(None)


def call(name: str, arguments: dict) -> str:
    [content] = asyncio.run(server.call_tool(name, arguments))
    return content.text


def test_tools_are_listed():
    tools = asyncio.run(server.list_tools())
    assert {tool.name for tool in tools} >= {"clip_list", "clip_pin", "clip_set_rules"}


def test_list_and_pin(pipeline):
    assert "docs.python.org" in call("clip_list", {})

    entry = pipeline.list()[1]
    assert call("clip_pin", {"entry_id": entry.id}) == f"Pinned: {entry.id}"
    assert pipeline.list()[0].id == entry.id
    assert call("clip_pin", {"entry_id": "missing"}) == "Not found: missing"


def test_set_config_rejects_zero_limit(pipeline):
    assert call("clip_set_config", {"limit": 0}).startswith("Error:")
    assert pipeline.limit == 10

    text = call("clip_set_config", {"limit": 1, "min_text_length": 5})
    assert "limit:               1" in text
    assert len(pipeline.list()) == 1


def test_set_rules_validates(pipeline):
    reply = call("clip_set_rules", {"rules": [{"pattern": "x", "field": "bogus", "action": "ignore"}]})
    assert reply.startswith("Error: Invalid rule")

    reply = call("clip_set_rules", {"rules": [{"pattern": "x", "field": "text", "action": "ignore"}]})
    assert reply == "Rules updated (1 rules)"


def test_clear_keeps_pinned_by_default(pipeline):
    pipeline.pin(pipeline.list()[0].id)
    assert call("clip_clear", {}) == "Cleared 1 entries"
    assert len(pipeline.list()) == 1


def test_unknown_tool(pipeline):
    assert call("clip_nope", {}) == "Unknown tool: clip_nope"


def test_set_config_applies_nothing_when_one_field_is_invalid(pipeline):
    assert call("clip_set_config", {"limit": 1, "min_text_length": -1}).startswith("Error:")
    assert pipeline.limit == 10
    assert pipeline.min_text_length == 3
    assert len(pipeline.list()) == 2
