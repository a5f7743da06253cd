"""
MCP Server for Cliptrail.

Runs the clipboard capture loop in the background and exposes the history
as tools, so an assistant can browse, pin and restore clipboard entries.
"""

import logging
import os
from datetime import timedelta
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent
from pydantic import ValidationError

from cliptrail.clipboard import ClipboardUnavailable
from cliptrail.config import ensure_dirs
from cliptrail.pipeline import CapturePipeline, build_pipeline
from cliptrail.surfacing import format_config, format_history

logger = logging.getLogger(__name__)

# Create MCP server
server = Server("cliptrail")

_pipeline: CapturePipeline | None = None


def get_pipeline() -> CapturePipeline:
    """The shared pipeline, built on first use."""
    global _pipeline
    if _pipeline is None:
        ensure_dirs()
        _pipeline = build_pipeline()
    return _pipeline


def set_pipeline(pipeline: CapturePipeline | None) -> None:
    global _pipeline
    _pipeline = pipeline


ENTRY_ID_SCHEMA = {
    "type": "object",
    "properties": {
        "entry_id": {
            "type": "string",
            "description": "The ID of the clipboard entry",
        },
    },
    "required": ["entry_id"],
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="clip_list",
            description="List clipboard history, pinned entries first, newest first.",
            inputSchema={
                "type": "object",
                "properties": {
                    "capture_type": {
                        "type": "string",
                        "description": "Filter by type (optional)",
                        "enum": ["text", "link", "code"],
                    },
                    "pinned_only": {
                        "type": "boolean",
                        "description": "Only pinned entries (default: false)",
                        "default": False,
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum entries to return (default: 20)",
                        "default": 20,
                    },
                },
            },
        ),
        Tool(
            name="clip_pin",
            description="Pin a clipboard entry so it is never evicted.",
            inputSchema=ENTRY_ID_SCHEMA,
        ),
        Tool(
            name="clip_unpin",
            description="Unpin a clipboard entry.",
            inputSchema=ENTRY_ID_SCHEMA,
        ),
        Tool(
            name="clip_delete",
            description="Delete a clipboard entry.",
            inputSchema=ENTRY_ID_SCHEMA,
        ),
        Tool(
            name="clip_restore",
            description="Copy a clipboard entry back onto the system clipboard.",
            inputSchema=ENTRY_ID_SCHEMA,
        ),
        Tool(
            name="clip_clear",
            description="Clear clipboard history.",
            inputSchema={
                "type": "object",
                "properties": {
                    "keep_pinned": {
                        "type": "boolean",
                        "description": "Keep pinned entries (default: true)",
                        "default": True,
                    },
                },
            },
        ),
        Tool(
            name="clip_config",
            description="Show clipboard history settings and rules.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="clip_set_config",
            description="Change clipboard history settings. Only provided fields change.",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {"type": "integer", "minimum": 1},
                    "min_text_length": {"type": "integer", "minimum": 0},
                    "dedup_window_minutes": {"type": "number", "minimum": 0},
                    "monitoring_enabled": {"type": "boolean"},
                    "persistence_enabled": {"type": "boolean"},
                },
            },
        ),
        Tool(
            name="clip_set_rules",
            description="Replace the capture rules (tag, ignore or merge by regex).",
            inputSchema={
                "type": "object",
                "properties": {
                    "rules": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "pattern": {"type": "string"},
                                "field": {"type": "string", "enum": ["text", "url", "app", "type"]},
                                "action": {"type": "string", "enum": ["tag", "ignore", "merge"]},
                                "tag": {"type": "string"},
                            },
                            "required": ["pattern", "field", "action"],
                        },
                    },
                },
                "required": ["rules"],
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "clip_list":
            return await tool_list(arguments)
        elif name == "clip_pin":
            return await tool_pin(arguments, pinned=True)
        elif name == "clip_unpin":
            return await tool_pin(arguments, pinned=False)
        elif name == "clip_delete":
            return await tool_delete(arguments)
        elif name == "clip_restore":
            return await tool_restore(arguments)
        elif name == "clip_clear":
            return await tool_clear(arguments)
        elif name == "clip_config":
            return await tool_config(arguments)
        elif name == "clip_set_config":
            return await tool_set_config(arguments)
        elif name == "clip_set_rules":
            return await tool_set_rules(arguments)
        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]
    except Exception as e:
        logger.exception("Tool %s failed", name)
        return [TextContent(type="text", text=f"Error: {e}")]


def _text(message: str) -> list[TextContent]:
    return [TextContent(type="text", text=message)]


async def tool_list(args: dict) -> list[TextContent]:
    """List history."""
    result = format_history(
        get_pipeline().list(),
        capture_type=args.get("capture_type"),
        pinned_only=args.get("pinned_only", False),
        limit=args.get("limit", 20),
    )
    return _text(result)


async def tool_pin(args: dict, pinned: bool) -> list[TextContent]:
    """Pin or unpin an entry."""
    entry_id = args.get("entry_id", "").strip().replace("-", "")
    if not entry_id:
        return _text("Error: No entry_id provided")

    pipeline = get_pipeline()
    success = pipeline.pin(entry_id) if pinned else pipeline.unpin(entry_id)

    if success:
        return _text(f"{'Pinned' if pinned else 'Unpinned'}: {entry_id}")
    else:
        return _text(f"Not found: {entry_id}")


async def tool_delete(args: dict) -> list[TextContent]:
    """Delete an entry."""
    entry_id = args.get("entry_id", "").strip().replace("-", "")
    if not entry_id:
        return _text("Error: No entry_id provided")

    if get_pipeline().delete(entry_id):
        return _text(f"Deleted: {entry_id}")
    else:
        return _text(f"Not found: {entry_id}")


async def tool_restore(args: dict) -> list[TextContent]:
    """Restore an entry to the clipboard."""
    entry_id = args.get("entry_id", "").strip().replace("-", "")
    if not entry_id:
        return _text("Error: No entry_id provided")

    try:
        found = get_pipeline().restore_entry(entry_id)
    except ClipboardUnavailable as e:
        return _text(f"Error: Clipboard unavailable: {e}")

    if found:
        return _text(f"Restored: {entry_id}")
    else:
        return _text(f"Not found: {entry_id}")


async def tool_clear(args: dict) -> list[TextContent]:
    """Clear history."""
    removed = get_pipeline().clear(keep_pinned=args.get("keep_pinned", True))
    return _text(f"Cleared {removed} entries")


async def tool_config(args: dict) -> list[TextContent]:
    """Show settings."""
    pipeline = get_pipeline()
    return _text(format_config(pipeline.get_config(), pipeline.rules))


async def tool_set_config(args: dict) -> list[TextContent]:
    """Apply the provided settings. Nothing changes unless all of them are valid."""
    pipeline = get_pipeline()

    try:
        changes: dict[str, Any] = {}
        if "limit" in args:
            changes["limit"] = int(args["limit"])
        if "min_text_length" in args:
            changes["min_text_length"] = int(args["min_text_length"])
        if "dedup_window_minutes" in args:
            changes["dedup_window"] = timedelta(minutes=float(args["dedup_window_minutes"]))
        if "monitoring_enabled" in args:
            changes["monitoring_enabled"] = bool(args["monitoring_enabled"])
        if "persistence_enabled" in args:
            changes["persistence_enabled"] = bool(args["persistence_enabled"])
        pipeline.update_config(**changes)
    except ValueError as e:
        return _text(f"Error: {e}")

    return _text(format_config(pipeline.get_config(), pipeline.rules))


async def tool_set_rules(args: dict) -> list[TextContent]:
    """Replace capture rules."""
    rules = args.get("rules")
    if not isinstance(rules, list):
        return _text("Error: rules must be a list")

    pipeline = get_pipeline()
    try:
        pipeline.set_rules(rules)
    except ValidationError as e:
        return _text(f"Error: Invalid rule: {e}")

    return _text(f"Rules updated ({len(pipeline.rules)} rules)")


async def main():
    """Run the MCP server with the capture loop in the background."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=os.environ.get("CLIPTRAIL_LOG_LEVEL", "INFO").upper(),
    )
    get_pipeline().start()

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def run() -> None:
    """Console entry point."""
    import asyncio
    asyncio.run(main())


if __name__ == "__main__":
    run()
