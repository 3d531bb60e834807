# =============================================================================
# core/__init__.py
# =============================================================================
# This package contains ALL the logic the toolkit owns: downsampling, the
# free-slot finder, CSV/JSON conversion, the R-tree index, schema validation
# and the workflow runner.
#
# ARCHITECTURAL RULE:
#   Nothing in this package imports Google ADK, FastMCP, or any other
#   orchestration framework.  Every module here can be imported and tested
#   without a model, a network connection or an MCP session.
# =============================================================================
