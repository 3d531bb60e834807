# =============================================================================
# tools/__init__.py
# =============================================================================
# This package contains the FastMCP tool server.
#
# ARCHITECTURAL ROLE:
#   tools/ sits between the agent framework and core/.  Each tool:
#     1. Imports a pure function from core/
#     2. Wraps it in a FastMCP tool decorator
#     3. Converts dataclasses → dicts for JSON
#     4. Caps list sizes so responses stay small
#
# BOUNDARIES:
#   - Algorithms and parsing stay in core/
#   - Choosing which tool to call is the agent's job
#   - Nothing here imports Google ADK
#
# TOOL CONTRACTS:
#   The LLM reads each tool's name, docstring and typed parameters to decide
#   when and how to call it, so every tool documents WHEN TO CALL it (where
#   that is not obvious) and the exact shape of what it returns.
# =============================================================================
