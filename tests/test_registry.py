"""
Unit tests for agent/registry.py and agent/prompt.py

Building an ADK agent does not start the MCP subprocess, so these run
without a model key or a tool server.
"""
from datetime import date

import pytest

from agent.prompt import get_calendar_prompt
from agent.registry import (
    AGENT_SPECS,
    DEFAULT_MODEL,
    create_agent,
    get_agent_spec,
    list_agents,
)
from tools.mcp_server import TOOL_NAMES


class TestRegistry:

    def test_ids_are_unique_identifiers(self):
        ids = [spec.id for spec in AGENT_SPECS]
        assert len(ids) == len(set(ids))
        assert all(i.isidentifier() for i in ids)

    def test_agents_only_use_served_tools(self):
        for spec in AGENT_SPECS:
            assert set(spec.tools) <= set(TOOL_NAMES), spec.id

    def test_list_agents(self):
        entries = list_agents()
        assert [e["id"] for e in entries] == [s.id for s in AGENT_SPECS]
        assert "find_free_slots" in entries[0]["tools"]

    def test_unknown_agent(self):
        with pytest.raises(KeyError, match="Known agents"):
            get_agent_spec("travel_agent")


class TestCreateAgent:

    def test_builds_adk_agent(self, monkeypatch):
        monkeypatch.delenv("AGENT_MODEL", raising=False)
        agent = create_agent("calendar_agent")

        assert agent.name == "calendar_agent"
        assert agent.model.model == DEFAULT_MODEL
        assert date.today().isoformat() in agent.instruction
        assert len(agent.tools) == 1

    def test_model_from_environment(self, monkeypatch):
        monkeypatch.setenv("AGENT_MODEL", "openrouter/anthropic/claude-3.5-sonnet")
        agent = create_agent("chart_data_agent")
        assert agent.model.model == "openrouter/anthropic/claude-3.5-sonnet"

    def test_unknown_agent(self):
        with pytest.raises(KeyError):
            create_agent("nope")


def test_prompts_mention_their_tools():
    prompt = get_calendar_prompt()
    assert "find_free_slots" in prompt
