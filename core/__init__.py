# =============================================================================
# core/__init__.py
# =============================================================================
# This package contains everything that talks to Eight Sleep:
#   config.py             credentials and endpoints read from the environment
#   exceptions.py         the error taxonomy
#   models.py             simplified response shapes (dataclasses)
#   eight_sleep_client.py authenticated httpx client (token + 401 retry)
#   eight_sleep_api.py    one coroutine per vendor resource
#
# Nothing in this package imports FastMCP.  The tools/ layer wraps the
# facade; everything here can be driven directly from a REPL or a test.
# =============================================================================
