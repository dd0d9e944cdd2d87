# =============================================================================
# tools/mcp_server.py  -  FastMCP Tool Server (ALL tools in one place)
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Registers every Eight Sleep MCP tool.  Each tool is a thin wrapper around
#   one EightSleepAPI coroutine: it binds the configured user id, calls the
#   facade, converts the result to plain JSON types and logs the exchange.
#
# HOW IT WORKS (the flow):
#   1. The agent calls a tool by name via MCP (e.g., "get_temperature")
#   2. FastMCP validates the arguments against the schema it built from the
#      annotated signature (bounds, enums, defaults, required set)
#   3. The tool awaits the facade (core/eight_sleep_api.py)
#   4. The facade goes through EightSleepClient, which owns the token
#   5. The result comes back to the agent as a JSON document
#
# ERRORS:
#   Any EightSleepError becomes a ToolError, so the agent sees a failed tool
#   call carrying the readable message.  Nothing is swallowed.
#
# TOOL NAMING CONVENTIONS:
#   - get_*    -> read-only, safe to retry
#   - set_*    -> create or change state (alarms/schedules are NOT deduplicated)
#   - update_* -> partial update, only the fields passed are sent
#   - delete_* -> remove by id
#
# RUNNING THIS SERVER:
#   a) python main.py
#   b) python -m tools.mcp_server
#   Both serve MCP over stdio.
# =============================================================================

import json
import logging
import sys
from contextlib import asynccontextmanager, contextmanager
from dataclasses import asdict
from typing import Annotated, Any, AsyncIterator, Iterator, Literal, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from core.config import EightSleepConfig
from core.eight_sleep_api import EightSleepAPI
from core.eight_sleep_client import EightSleepClient
from core.exceptions import EightSleepError

# =============================================================================
# Logging Setup
# =============================================================================
# Logs go to STDERR: STDOUT is the MCP transport, and anything else written
# there corrupts the JSON-RPC stream.
#
# Colour coding:
#   CYAN   incoming tool calls with their parameters
#   GREEN  response JSON
#   YELLOW intermediate status
#   RED    failed calls
# =============================================================================

_CYAN = "\033[36m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RED = "\033[31m"
_RESET = "\033[0m"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [MCP] %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stderr,
)


def _log_request(tool_name: str, **params) -> None:
    """Log an incoming tool call with its parameters in CYAN."""
    param_str = ", ".join(f"{k}={v!r}" for k, v in params.items())
    logging.info(f"{_CYAN}{tool_name} called with: {param_str}{_RESET}")


def _log_status(message: str) -> None:
    """Log an intermediate status message in YELLOW."""
    logging.info(f"{_YELLOW}  → {message}{_RESET}")


def _log_response(tool_name: str, result: Any) -> Any:
    """Log the tool response as compact JSON in GREEN, then return it."""
    logging.info(f"{_GREEN}  ← {tool_name} response: {json.dumps(result, separators=(',', ':'))}{_RESET}")
    return result


@contextmanager
def _tool_errors(tool_name: str) -> Iterator[None]:
    """Turn facade errors into a failed MCP tool call."""
    try:
        yield
    except EightSleepError as err:
        logging.warning(f"{_RED}  ✗ {tool_name} failed: {err}{_RESET}")
        raise ToolError(str(err)) from err


def _present(**fields: Any) -> dict[str, Any]:
    """Keep only the fields the caller actually supplied."""
    return {k: v for k, v in fields.items() if v is not None}


def _closing(client: EightSleepClient):
    """Lifespan that closes the client's HTTP sessions when the server stops."""

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        try:
            yield {}
        finally:
            _log_status("Closing Eight Sleep HTTP sessions")
            await client.aclose()

    return lifespan


# =============================================================================
# Parameter types shared by several tools
# =============================================================================
Level = Annotated[int, Field(ge=-100, le=100, description="Temperature level (-100 to 100)")]
DateStr = Annotated[str, Field(description="Date in YYYY-MM-DD format")]
TimeStr = Annotated[
    str,
    Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$", description="Time in HH:mm format"),
]
DaysOfWeek = Annotated[
    list[Annotated[int, Field(ge=0, le=6)]],
    Field(description="Days of week (0 = Sunday, 6 = Saturday)"),
]


# =============================================================================
# Server factory
# =============================================================================
# The facade and the user id are injected so the same tool table can be
# served over stdio or exercised in-memory by the tests.
# =============================================================================
def create_server(
    api: EightSleepAPI,
    user_id: str,
    client: Optional[EightSleepClient] = None,
) -> FastMCP:
    """Build the FastMCP server with every Eight Sleep tool registered.

    Args:
        api: Facade the tools call into.
        user_id: The configured user every tool acts on.
        client: When given, closed as the server shuts down.

    Returns:
        A FastMCP instance ready to run().
    """
    mcp = FastMCP("eight-sleep-mcp", lifespan=_closing(client) if client is not None else None)

    # -------------------------------------------------------------------------
    # Users & temperature
    # -------------------------------------------------------------------------
    @mcp.tool()
    async def get_users() -> dict:
        """Get the connected Eight Sleep user, keyed by user id."""
        _log_request("get_users")
        with _tool_errors("get_users"):
            users = await api.get_users()
        return _log_response("get_users", users)

    @mcp.tool()
    async def get_temperature() -> dict:
        """Get current temperature settings for the configured user.

        Returns:
            current, target: heating levels (-100..100)
            heating: true when the target is above 0
            cooling: true when the target is below 0
        """
        _log_request("get_temperature")
        with _tool_errors("get_temperature"):
            state = await api.get_temperature(user_id)
        return _log_response("get_temperature", asdict(state))

    @mcp.tool()
    async def set_temperature(
        level: Level,
        duration: Annotated[int, Field(ge=0, description="Duration in seconds (0 for indefinite)")] = 0,
    ) -> dict:
        """Set temperature for the configured user."""
        _log_request("set_temperature", level=level, duration=duration)
        with _tool_errors("set_temperature"):
            result = await api.set_temperature(user_id, level, duration)
        return _log_response("set_temperature", result)

    # -------------------------------------------------------------------------
    # Sleep data
    # -------------------------------------------------------------------------
    @mcp.tool()
    async def get_sleep_data(
        start_date: DateStr,
        end_date: Annotated[
            Optional[str], Field(description="End date in YYYY-MM-DD format (optional)")
        ] = None,
    ) -> list:
        """Get raw sleep day records for the configured user within a date range.

        If end_date is omitted the range covers start_date and the next day.
        An empty list means the vendor has no records for the range.
        """
        _log_request("get_sleep_data", start_date=start_date, end_date=end_date)
        with _tool_errors("get_sleep_data"):
            days = await api.get_sleep_data(user_id, start_date, end_date)
        _log_status(f"Got {len(days)} day record(s)")
        return _log_response("get_sleep_data", days)

    @mcp.tool()
    async def get_hrv(date: DateStr) -> dict:
        """Get HRV (Heart Rate Variability) data for a specific date."""
        _log_request("get_hrv", date=date)
        with _tool_errors("get_hrv"):
            reading = await api.get_hrv(user_id, date)
        return _log_response("get_hrv", asdict(reading))

    @mcp.tool()
    async def get_sleep_score(date: DateStr) -> dict:
        """Get sleep score data (total, hrv, breathing, toss and turns) for a date."""
        _log_request("get_sleep_score", date=date)
        with _tool_errors("get_sleep_score"):
            score = await api.get_sleep_score(user_id, date)
        return _log_response("get_sleep_score", asdict(score))

    @mcp.tool()
    async def get_sleep_stages(date: DateStr) -> dict:
        """Get time spent in each sleep stage for a specific date.

        Keys are lower-case stage names (e.g. awake, light, deep, rem).
        Stages the vendor did not report are absent, not zero.
        """
        _log_request("get_sleep_stages", date=date)
        with _tool_errors("get_sleep_stages"):
            stages = await api.get_sleep_stages(user_id, date)
        return _log_response("get_sleep_stages", stages)

    @mcp.tool()
    async def get_presence() -> dict:
        """Check if the configured user is currently in bed."""
        _log_request("get_presence")
        with _tool_errors("get_presence"):
            present = await api.get_presence(user_id)
        return _log_response("get_presence", {"user_id": user_id, "present": present})

    @mcp.tool()
    async def get_respiratory_rate(date: DateStr) -> dict:
        """Get the average respiratory rate for a specific date."""
        _log_request("get_respiratory_rate", date=date)
        with _tool_errors("get_respiratory_rate"):
            average = await api.get_respiratory_rate(user_id, date)
        return _log_response("get_respiratory_rate", {"date": date, "average": average})

    @mcp.tool()
    async def get_heart_rate(date: DateStr) -> dict:
        """Get heart rate data (average, min, max) for a specific date."""
        _log_request("get_heart_rate", date=date)
        with _tool_errors("get_heart_rate"):
            heart_rate = await api.get_heart_rate(user_id, date)
        return _log_response("get_heart_rate", asdict(heart_rate))

    @mcp.tool()
    async def get_sleep_timing(date: DateStr) -> dict:
        """Get sleep timing data (bedtime and wake time) for a specific date."""
        _log_request("get_sleep_timing", date=date)
        with _tool_errors("get_sleep_timing"):
            timing = await api.get_sleep_timing(user_id, date)
        return _log_response("get_sleep_timing", asdict(timing))

    @mcp.tool()
    async def get_sleep_fitness_trends(
        days: Annotated[int, Field(ge=1, description="Number of days to get trends for")] = 7,
    ) -> list:
        """Get sleep fitness trends over a period of days."""
        _log_request("get_sleep_fitness_trends", days=days)
        with _tool_errors("get_sleep_fitness_trends"):
            trends = await api.get_sleep_fitness_trends(user_id, days)
        return _log_response("get_sleep_fitness_trends", [asdict(t) for t in trends])

    # -------------------------------------------------------------------------
    # Alarms
    # -------------------------------------------------------------------------
    @mcp.tool()
    async def get_alarms() -> list:
        """Get all alarms for the configured user."""
        _log_request("get_alarms")
        with _tool_errors("get_alarms"):
            alarms = await api.get_alarms(user_id)
        return _log_response("get_alarms", [asdict(a) for a in alarms])

    @mcp.tool()
    async def set_alarm(
        time: TimeStr,
        days_of_week: DaysOfWeek,
        vibration: Annotated[bool, Field(description="Whether to use vibration")] = True,
        sound: Annotated[
            Optional[str], Field(description="Sound to use for the alarm (optional)")
        ] = None,
    ) -> dict:
        """Create a new, enabled alarm for the configured user."""
        _log_request("set_alarm", time=time, days_of_week=days_of_week,
                     vibration=vibration, sound=sound)
        with _tool_errors("set_alarm"):
            alarm = await api.set_alarm(user_id, time, days_of_week, vibration, sound)
        return _log_response("set_alarm", asdict(alarm))

    @mcp.tool()
    async def update_alarm(
        alarm_id: Annotated[str, Field(description="ID of the alarm to update")],
        enabled: Optional[bool] = None,
        time: Optional[TimeStr] = None,
        days_of_week: Optional[DaysOfWeek] = None,
        vibration: Optional[bool] = None,
    ) -> dict:
        """Update an existing alarm.  Only the fields provided are changed."""
        _log_request("update_alarm", alarm_id=alarm_id, enabled=enabled, time=time,
                     days_of_week=days_of_week, vibration=vibration)
        updates = _present(enabled=enabled, time=time, daysOfWeek=days_of_week,
                           vibration=vibration)
        with _tool_errors("update_alarm"):
            alarm = await api.update_alarm(user_id, alarm_id, updates)
        return _log_response("update_alarm", asdict(alarm))

    @mcp.tool()
    async def delete_alarm(
        alarm_id: Annotated[str, Field(description="ID of the alarm to delete")],
    ) -> dict:
        """Delete an alarm."""
        _log_request("delete_alarm", alarm_id=alarm_id)
        with _tool_errors("delete_alarm"):
            await api.delete_alarm(user_id, alarm_id)
        return _log_response("delete_alarm", {"message": f"Alarm {alarm_id} deleted"})

    # -------------------------------------------------------------------------
    # Device control
    # -------------------------------------------------------------------------
    @mcp.tool()
    async def get_device_status() -> dict:
        """Get the current status of the Eight Sleep device."""
        _log_request("get_device_status")
        with _tool_errors("get_device_status"):
            status = await api.get_device_status(user_id)
        return _log_response("get_device_status", asdict(status))

    @mcp.tool()
    async def set_device_power(
        on: Annotated[bool, Field(description="Whether to turn the device on (true) or off (false)")],
    ) -> dict:
        """Turn the Eight Sleep device on or off."""
        _log_request("set_device_power", on=on)
        with _tool_errors("set_device_power"):
            await api.set_device_power(user_id, on)
        return _log_response("set_device_power", {"message": f"Device turned {'on' if on else 'off'}"})

    # -------------------------------------------------------------------------
    # Temperature schedules
    # -------------------------------------------------------------------------
    @mcp.tool()
    async def get_temperature_schedules() -> list:
        """Get all temperature schedules for the configured user."""
        _log_request("get_temperature_schedules")
        with _tool_errors("get_temperature_schedules"):
            schedules = await api.get_temperature_schedules(user_id)
        return _log_response("get_temperature_schedules", [asdict(s) for s in schedules])

    @mcp.tool()
    async def set_temperature_schedule(
        start_time: TimeStr,
        level: Level,
        days_of_week: DaysOfWeek,
    ) -> dict:
        """Create a new, enabled temperature schedule."""
        _log_request("set_temperature_schedule", start_time=start_time, level=level,
                     days_of_week=days_of_week)
        with _tool_errors("set_temperature_schedule"):
            schedule = await api.set_temperature_schedule(user_id, start_time, level, days_of_week)
        return _log_response("set_temperature_schedule", asdict(schedule))

    @mcp.tool()
    async def update_temperature_schedule(
        schedule_id: Annotated[str, Field(description="ID of the schedule to update")],
        start_time: Optional[TimeStr] = None,
        level: Optional[Level] = None,
        days_of_week: Optional[DaysOfWeek] = None,
        enabled: Optional[bool] = None,
    ) -> dict:
        """Update an existing temperature schedule.  Only the fields provided are changed."""
        _log_request("update_temperature_schedule", schedule_id=schedule_id,
                     start_time=start_time, level=level, days_of_week=days_of_week,
                     enabled=enabled)
        updates = _present(startTime=start_time, level=level, daysOfWeek=days_of_week,
                           enabled=enabled)
        with _tool_errors("update_temperature_schedule"):
            schedule = await api.update_temperature_schedule(user_id, schedule_id, updates)
        return _log_response("update_temperature_schedule", asdict(schedule))

    @mcp.tool()
    async def delete_temperature_schedule(
        schedule_id: Annotated[str, Field(description="ID of the schedule to delete")],
    ) -> dict:
        """Delete a temperature schedule."""
        _log_request("delete_temperature_schedule", schedule_id=schedule_id)
        with _tool_errors("delete_temperature_schedule"):
            await api.delete_temperature_schedule(user_id, schedule_id)
        return _log_response("delete_temperature_schedule",
                             {"message": f"Schedule {schedule_id} deleted"})

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------
    @mcp.tool()
    async def get_user_preferences() -> dict:
        """Get user preferences (units, timezone, bed side, sleep goal)."""
        _log_request("get_user_preferences")
        with _tool_errors("get_user_preferences"):
            preferences = await api.get_user_preferences(user_id)
        return _log_response("get_user_preferences", asdict(preferences))

    @mcp.tool()
    async def update_user_preferences(
        units: Optional[Literal["imperial", "metric"]] = None,
        timezone: Annotated[Optional[str], Field(description="Preferred timezone")] = None,
        bed_side: Annotated[
            Optional[Literal["left", "right", ""]],
            Field(description='Preferred side of the bed ("" for none)'),
        ] = None,
        sleep_goal: Annotated[
            Optional[int], Field(ge=0, description="Sleep goal in minutes")
        ] = None,
    ) -> dict:
        """Update user preferences.  Only the fields provided are changed."""
        _log_request("update_user_preferences", units=units, timezone=timezone,
                     bed_side=bed_side, sleep_goal=sleep_goal)
        updates = _present(units=units, timezone=timezone, sleepGoal=sleep_goal)
        if bed_side is not None:
            updates["bedSide"] = bed_side or None
        with _tool_errors("update_user_preferences"):
            preferences = await api.update_user_preferences(user_id, updates)
        return _log_response("update_user_preferences", asdict(preferences))

    return mcp


def serve(config: EightSleepConfig) -> None:
    """Wire config -> client -> facade -> tools and serve MCP over stdio."""
    client = EightSleepClient(config)
    api = EightSleepAPI(client, timezone=config.timezone)
    mcp = create_server(api, config.user_id, client)
    _log_status(f"Serving Eight Sleep tools for user {config.user_id or '<unset>'}")
    mcp.run()


# =============================================================================
# Server entry point
# =============================================================================
if __name__ == "__main__":
    from dotenv import load_dotenv

    load_dotenv()
    serve(EightSleepConfig.from_env())
