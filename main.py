# =============================================================================
# main.py  -  Entry Point for the Eight Sleep MCP Server
# =============================================================================
#
# HOW TO RUN:
#   uv run python main.py
#   (or the installed console script: eight-sleep-mcp)
#
# WHAT HAPPENS:
#   1. Loads .env into the environment (EIGHT_SLEEP_EMAIL, ...)
#   2. Builds one EightSleepConfig from the environment
#   3. Creates the client, the API facade and the FastMCP tool server
#   4. Serves MCP over stdio until the client disconnects
#
# CREDENTIALS:
#   The server starts even without EIGHT_SLEEP_EMAIL / EIGHT_SLEEP_PASSWORD.
#   The first tool call then fails with a configuration error instead.
#
# CONNECTING AN AGENT:
#   Point any MCP client at this script with the stdio transport, e.g.
#     {"command": "python", "args": ["/path/to/main.py"]}
# =============================================================================

from dotenv import load_dotenv

from core.config import EightSleepConfig
from tools.mcp_server import serve


def main() -> None:
    """Start the Eight Sleep MCP server on stdio."""
    # Load environment variables from .env BEFORE reading the config.
    load_dotenv()
    serve(EightSleepConfig.from_env())


# =============================================================================
# Script entry point
# =============================================================================
# Any startup failure propagates, so the process exits non-zero.
# =============================================================================
if __name__ == "__main__":
    main()
