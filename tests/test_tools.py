"""Tests for the tool registry."""

from google.generativeai.types import content_types

from aicli.ai.tools import ToolRegistry


def to_request_tools(registry):
    """The protos.Tool list the SDK puts on the request."""
    return content_types.to_function_library(registry.enabled_tools()).to_proto()


def test_nothing_enabled_by_default():
    registry = ToolRegistry()
    assert registry.enabled_tools() is None
    assert registry.enabled_names() == []


def test_toggle():
    registry = ToolRegistry()
    assert registry.toggle("google_search") is True
    assert registry.enabled_names() == ["Google Search"]
    assert registry.toggle("google_search") is False
    assert registry.toggle("does_not_exist") is False


def test_google_search_uses_search_tool():
    registry = ToolRegistry()
    registry.enable(["google_search"])

    (tool,) = to_request_tools(registry)

    assert "google_search" in tool
    assert "google_search_retrieval" not in tool


def test_code_execution_tool():
    registry = ToolRegistry()
    registry.enable(["code_execution"])

    (tool,) = to_request_tools(registry)

    assert "code_execution" in tool
    assert "google_search" not in tool


def test_both_tools_reach_the_request():
    registry = ToolRegistry()
    registry.enable(["google_search", "code_execution"])

    tools = to_request_tools(registry)

    assert len(tools) == 2
    assert "google_search" in tools[0]
    assert "code_execution" in tools[1]


def test_enable_replaces_selection():
    registry = ToolRegistry()
    registry.enable(["google_search"])
    registry.enable(["code_execution"])
    assert registry.enabled_names() == ["Code Execution"]


def test_reset():
    registry = ToolRegistry()
    registry.enable(["google_search", "code_execution"])
    registry.reset()
    assert registry.enabled_tools() is None


def test_registries_are_independent():
    first, second = ToolRegistry(), ToolRegistry()
    first.enable(["code_execution"])
    assert second.enabled_tools() is None
