# =============================================================================
# agent/__init__.py
# =============================================================================
# This package holds the agent registry and the agents' system prompts.
#
# ARCHITECTURAL ROLE:
#   An agent here is configuration, not code: a prompt, a model reference
#   and a list of MCP tools.  Google ADK runs the reasoning loop; the tools
#   do the work; core/ holds the logic the tools call.
#
#   agent/registry.py → AgentSpec definitions + create_agent()
#   agent/prompt.py   → one prompt function per agent
# =============================================================================
