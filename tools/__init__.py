# =============================================================================
# tools/__init__.py
# =============================================================================
# This package contains the FastMCP tool layer.
#
# ARCHITECTURAL ROLE:
#   tools/ is the translation layer between the MCP protocol and core/.
#   Each tool:
#     1. Declares its parameter schema through an annotated signature
#     2. Calls exactly one EightSleepAPI coroutine from core/
#     3. Converts the dataclass result to plain JSON types
#     4. Turns EightSleepError into a failed tool call
#
# WHAT TOOLS DO NOT DO:
#   - They do NOT build HTTP requests (that's core/eight_sleep_api.py)
#   - They do NOT hold tokens (that's core/eight_sleep_client.py)
# =============================================================================
