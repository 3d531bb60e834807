# =============================================================================
# agent/registry.py  —  Agent Registry (declarative agent definitions)
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Declares every agent the toolkit ships as an AgentSpec: an id, a
#   human-readable name, a prompt function and the MCP tools it may use.
#   create_agent() turns a spec into a Google ADK Agent.
#
# HOW AN AGENT IS ASSEMBLED:
#
#   AgentSpec ──▶ instruction()  ──▶ system prompt (today's date injected)
#             ──▶ AGENT_MODEL    ──▶ LiteLlm model (default GPT-4o via OpenRouter)
#             ──▶ tools          ──▶ MCPToolset(tool_filter=tools)
#                                       │
#                                       ▼
#                               tools/mcp_server.py (stdio subprocess)
#
#   Every agent talks to the same FastMCP server; tool_filter limits which
#   of its tools each agent can see.
#
# MODEL SELECTION:
#   AGENT_MODEL is a LiteLLM model string.  "openrouter/openai/gpt-4o" routes
#   through OpenRouter (needs OPENROUTER_API_KEY); any other LiteLLM string
#   works the same way, e.g. "openrouter/anthropic/claude-3.5-sonnet".
# =============================================================================

import os
import sys
from dataclasses import dataclass
from typing import Callable

from google.adk.agents import Agent
from google.adk.models.lite_llm import LiteLlm
from google.adk.tools.mcp_tool import MCPToolset, StdioConnectionParams
from mcp import StdioServerParameters

from agent.prompt import (
    get_calendar_prompt,
    get_chart_data_prompt,
    get_data_export_prompt,
    get_data_ingestion_prompt,
)

DEFAULT_MODEL = "openrouter/openai/gpt-4o"

# Seconds to wait for the MCP server to answer a request
MCP_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class AgentSpec:
    """A declarative agent definition."""

    id: str                            # Also the ADK agent name (must be an identifier)
    name: str
    description: str                   # Shown to users and to routing models
    instruction: Callable[[], str]     # Builds the system prompt
    tools: tuple[str, ...]             # MCP tool names this agent may call


AGENT_SPECS: tuple[AgentSpec, ...] = (
    AgentSpec(
        id="calendar_agent",
        name="Calendar Agent",
        description="Views the local calendar, summarises upcoming events and finds free slots for meetings.",
        instruction=get_calendar_prompt,
        tools=("list_calendar_events", "get_today_events", "get_upcoming_events", "find_free_slots"),
    ),
    AgentSpec(
        id="data_ingestion_agent",
        name="Data Ingestion Agent",
        description="Parses CSV data, validates rows against a schema and imports it after human approval.",
        instruction=get_data_ingestion_prompt,
        tools=("csv_to_json", "validate_data", "start_data_ingestion",
               "resume_data_ingestion", "get_workflow_run"),
    ),
    AgentSpec(
        id="data_export_agent",
        name="Data Export Agent",
        description="Validates JSON records and exports them as CSV.",
        instruction=get_data_export_prompt,
        tools=("validate_data", "json_to_csv"),
    ),
    AgentSpec(
        id="chart_data_agent",
        name="Chart Data Agent",
        description="Downsamples numeric series and indexes map points for charting front-ends.",
        instruction=get_chart_data_prompt,
        tools=("downsample_series", "build_spatial_index", "search_spatial_index"),
    ),
)

_SPECS_BY_ID = {spec.id: spec for spec in AGENT_SPECS}


def list_agents() -> list[dict]:
    """Summaries of every registered agent, in registration order."""
    return [
        {"id": s.id, "name": s.name, "description": s.description, "tools": list(s.tools)}
        for s in AGENT_SPECS
    ]


def get_agent_spec(agent_id: str) -> AgentSpec:
    try:
        return _SPECS_BY_ID[agent_id]
    except KeyError:
        raise KeyError(f"Unknown agent '{agent_id}'. Known agents: {sorted(_SPECS_BY_ID)}") from None


def _tool_server_params() -> StdioServerParameters:
    """How ADK launches tools/mcp_server.py as a stdio subprocess.

    The server runs with the current interpreter from the project root, so
    it sees the same installed packages and .env file as this process.
    """
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return StdioServerParameters(
        command=sys.executable,
        args=["-m", "tools.mcp_server"],
        cwd=project_root,
    )


def create_agent(agent_id: str) -> Agent:
    """Build the ADK agent for `agent_id`.

    The MCP subprocess is not started here; ADK starts it on the first
    request that needs the tool list.

    Raises:
        KeyError: unknown agent id.
    """
    spec = get_agent_spec(agent_id)

    toolset = MCPToolset(
        connection_params=StdioConnectionParams(
            server_params=_tool_server_params(),
            timeout=MCP_TIMEOUT_SECONDS,
        ),
        tool_filter=list(spec.tools),
    )

    return Agent(
        name=spec.id,
        model=LiteLlm(model=os.environ.get("AGENT_MODEL", DEFAULT_MODEL)),
        description=spec.description,
        instruction=spec.instruction(),
        tools=[toolset],
    )
