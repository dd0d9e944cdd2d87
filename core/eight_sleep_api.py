# =============================================================================
# core/eight_sleep_api.py  -  Eight Sleep API Facade
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   One coroutine per Eight Sleep resource.  Each call goes through
#   EightSleepClient (which owns the token) and reshapes the vendor JSON
#   into the dataclasses in core/models.py.
#
# SLEEP DATA:
#   Score, HRV and stage helpers all start from get_sleep_data() for a single
#   date and read only the FIRST day record that comes back.
#
# ERRORS:
#   Client errors pass through with an operation prefix added once, e.g.
#   "Failed to get sleep data: <vendor message>".  The exception class (and
#   for ApiError the HTTP status) is unchanged.
# =============================================================================

import functools
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar

from core.config import DEFAULT_TIMEZONE
from core.eight_sleep_client import EightSleepClient
from core.exceptions import ApiError, AuthenticationError, NotFoundError, ValidationError
from core.models import (
    Alarm,
    DeviceStatus,
    FitnessTrend,
    HeartRate,
    HrvReading,
    SleepScore,
    SleepTiming,
    TemperatureSchedule,
    TemperatureState,
    UserPreferences,
)

_LOGGER = logging.getLogger(__name__)

MIN_LEVEL = -100
MAX_LEVEL = 100
DATE_FORMAT = "%Y-%m-%d"

T = TypeVar("T")


def _describe_failure(
    operation: str,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Prefix client errors raised inside the wrapped coroutine with ``operation``."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await func(*args, **kwargs)
            except (ApiError, AuthenticationError) as err:
                if err.operation is not None:
                    raise
                raise err.for_operation(operation) from err

        return wrapper

    return decorator


def _validate_level(level: int) -> None:
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        out_of_range = f"Temperature level must be between {MIN_LEVEL} and {MAX_LEVEL}"
        raise ValidationError(out_of_range)


def _parse_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, DATE_FORMAT)
    except (TypeError, ValueError) as err:
        invalid = f"Invalid date {value!r}, expected YYYY-MM-DD"
        raise ValidationError(invalid) from err


def _user_path(user_id: str, *parts: str) -> str:
    if not user_id:
        missing = "A user id is required. Set EIGHT_SLEEP_USER_ID"
        raise ValidationError(missing)
    return "/".join(("", "users", user_id, *parts))


class EightSleepAPI:
    """Purpose-specific operations over the Eight Sleep REST API."""

    def __init__(self, client: EightSleepClient, timezone: str = DEFAULT_TIMEZONE) -> None:
        self._client = client
        self._timezone = timezone

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------
    @_describe_failure("Failed to get users")
    async def get_users(self) -> dict[str, Any]:
        """Return the authenticated account keyed by the active user id."""
        data = await self._client.request("GET", "/users/me")
        return {self._client.user_id or "": data}

    # -------------------------------------------------------------------------
    # Temperature
    # -------------------------------------------------------------------------
    @_describe_failure("Failed to get temperature data")
    async def get_temperature(self, user_id: str) -> TemperatureState:
        data = await self._client.request("GET", _user_path(user_id, "temperature"))
        return TemperatureState.from_api(data or {})

    @_describe_failure("Failed to set temperature")
    async def set_temperature(self, user_id: str, level: int, duration: int = 0) -> dict[str, str]:
        """Set the bed's heating level, optionally for a limited time.

        Args:
            user_id: Target user.
            level: Heating level from -100 (coolest) to 100 (warmest).
            duration: Seconds the level should hold.  0 keeps it indefinitely.

        Returns:
            An acknowledgement message.  The vendor's applied state is not
            re-read.

        Raises:
            ValidationError: If level is outside [-100, 100].  Nothing is sent.
        """
        _validate_level(level)
        path = _user_path(user_id, "temperature")

        await self._client.request("PUT", path, json={"currentLevel": level})
        if duration > 0:
            await self._client.request(
                "PUT",
                path,
                json={"timeBased": {"level": level, "durationSeconds": duration}},
            )

        _LOGGER.info("Temperature set to %d (duration=%ds)", level, duration)
        return {"message": "Temperature updated successfully"}

    # -------------------------------------------------------------------------
    # Sleep data (trends endpoint)
    # -------------------------------------------------------------------------
    @_describe_failure("Failed to get sleep data")
    async def get_sleep_data(
        self,
        user_id: str,
        start_date: str,
        end_date: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Fetch per-day sleep records for a date range.

        Args:
            user_id: Target user.
            start_date: First day, YYYY-MM-DD.
            end_date: Last day, YYYY-MM-DD.  Defaults to the day after
                start_date.

        Returns:
            The vendor's day records, possibly empty.
        """
        start = _parse_date(start_date)
        if end_date is None:
            end_date = (start + timedelta(days=1)).strftime(DATE_FORMAT)
        else:
            _parse_date(end_date)

        params = {
            "tz": self._timezone,
            "from": start_date,
            "to": end_date,
            "include-main": "false",
            "include-all-sessions": "true",
            "model-version": "v2",
        }
        data = await self._client.request("GET", _user_path(user_id, "trends"), params=params)
        days = (data or {}).get("days") or []
        _LOGGER.debug("Trends %s..%s returned %d day(s)", start_date, end_date, len(days))
        return days

    async def _first_day(self, user_id: str, date: str) -> dict[str, Any]:
        days = await self.get_sleep_data(user_id, date)
        if not days:
            raise NotFoundError(f"No sleep data found for date {date}")
        return days[0]

    @_describe_failure("Failed to get sleep score")
    async def get_sleep_score(self, user_id: str, date: str) -> SleepScore:
        return SleepScore.from_day(await self._first_day(user_id, date))

    @_describe_failure("Failed to get HRV")
    async def get_hrv(self, user_id: str, date: str) -> HrvReading:
        return HrvReading.from_day(date, await self._first_day(user_id, date))

    @_describe_failure("Failed to get sleep stages")
    async def get_sleep_stages(self, user_id: str, date: str) -> dict[str, int]:
        """Total time per sleep stage for one night.

        Stage names are lower-cased.  Only stages that appear with a
        non-zero duration are returned; repeated segments are summed
        rather than letting the last segment overwrite earlier ones.
        """
        day = await self._first_day(user_id, date)
        stages: dict[str, int] = {}
        for segment in day.get("stages") or []:
            name = segment.get("stage")
            duration = segment.get("duration")
            if name and duration:
                key = name.lower()
                stages[key] = stages.get(key, 0) + duration
        return stages

    @_describe_failure("Failed to get presence")
    async def get_presence(self, user_id: str) -> bool:
        data = await self._client.request("GET", _user_path(user_id, "presence"))
        return bool((data or {}).get("presence", False))

    # -------------------------------------------------------------------------
    # Additional sleep metrics
    # -------------------------------------------------------------------------
    @_describe_failure("Failed to get respiratory rate")
    async def get_respiratory_rate(self, user_id: str, date: str) -> Optional[float]:
        _parse_date(date)
        data = await self._client.request(
            "GET", _user_path(user_id, "sleep", "respiratory_rate"), params={"date": date}
        )
        return (data or {}).get("average")

    @_describe_failure("Failed to get heart rate")
    async def get_heart_rate(self, user_id: str, date: str) -> HeartRate:
        _parse_date(date)
        data = await self._client.request(
            "GET", _user_path(user_id, "sleep", "heart_rate"), params={"date": date}
        )
        return HeartRate.from_api(data or {})

    @_describe_failure("Failed to get sleep timing")
    async def get_sleep_timing(self, user_id: str, date: str) -> SleepTiming:
        _parse_date(date)
        data = await self._client.request(
            "GET", _user_path(user_id, "sleep", "timing"), params={"date": date}
        )
        return SleepTiming.from_api(data or {})

    @_describe_failure("Failed to get sleep fitness trends")
    async def get_sleep_fitness_trends(self, user_id: str, days: int = 7) -> list[FitnessTrend]:
        if days < 1:
            raise ValidationError("days must be at least 1")
        data = await self._client.request(
            "GET", _user_path(user_id, "sleep", "fitness", "trends"), params={"days": days}
        )
        return [FitnessTrend.from_api(t) for t in (data or {}).get("trends") or []]

    # -------------------------------------------------------------------------
    # Alarms
    # -------------------------------------------------------------------------
    @_describe_failure("Failed to get alarms")
    async def get_alarms(self, user_id: str) -> list[Alarm]:
        data = await self._client.request("GET", _user_path(user_id, "alarms"))
        return [Alarm.from_api(a) for a in (data or {}).get("alarms") or []]

    @_describe_failure("Failed to create alarm")
    async def set_alarm(
        self,
        user_id: str,
        time: str,
        days_of_week: list[int],
        vibration: bool = True,
        sound: Optional[str] = None,
    ) -> Alarm:
        """Create an enabled alarm.  The vendor assigns the id."""
        payload: dict[str, Any] = {
            "time": time,
            "daysOfWeek": days_of_week,
            "vibration": vibration,
            "enabled": True,
        }
        if sound is not None:
            payload["sound"] = sound
        data = await self._client.request("POST", _user_path(user_id, "alarms"), json=payload)
        return Alarm.from_api((data or {}).get("alarm") or {})

    @_describe_failure("Failed to update alarm")
    async def update_alarm(self, user_id: str, alarm_id: str, updates: dict[str, Any]) -> Alarm:
        data = await self._client.request(
            "PATCH", _user_path(user_id, "alarms", alarm_id), json=updates
        )
        return Alarm.from_api((data or {}).get("alarm") or {})

    @_describe_failure("Failed to delete alarm")
    async def delete_alarm(self, user_id: str, alarm_id: str) -> None:
        await self._client.request("DELETE", _user_path(user_id, "alarms", alarm_id))

    # -------------------------------------------------------------------------
    # Device
    # -------------------------------------------------------------------------
    @_describe_failure("Failed to get device status")
    async def get_device_status(self, user_id: str) -> DeviceStatus:
        data = await self._client.request("GET", _user_path(user_id, "devices", "status"))
        return DeviceStatus.from_api((data or {}).get("status") or {})

    @_describe_failure("Failed to set device power")
    async def set_device_power(self, user_id: str, on: bool) -> None:
        await self._client.request("POST", _user_path(user_id, "devices", "power"), json={"on": on})

    # -------------------------------------------------------------------------
    # Temperature schedules
    # -------------------------------------------------------------------------
    @_describe_failure("Failed to get temperature schedules")
    async def get_temperature_schedules(self, user_id: str) -> list[TemperatureSchedule]:
        data = await self._client.request("GET", _user_path(user_id, "temperature", "schedules"))
        return [TemperatureSchedule.from_api(s) for s in (data or {}).get("schedules") or []]

    @_describe_failure("Failed to create temperature schedule")
    async def set_temperature_schedule(
        self,
        user_id: str,
        start_time: str,
        level: int,
        days_of_week: list[int],
    ) -> TemperatureSchedule:
        _validate_level(level)
        payload = {
            "startTime": start_time,
            "level": level,
            "daysOfWeek": days_of_week,
            "enabled": True,
        }
        data = await self._client.request(
            "POST", _user_path(user_id, "temperature", "schedules"), json=payload
        )
        return TemperatureSchedule.from_api((data or {}).get("schedule") or {})

    @_describe_failure("Failed to update temperature schedule")
    async def update_temperature_schedule(
        self, user_id: str, schedule_id: str, updates: dict[str, Any]
    ) -> TemperatureSchedule:
        if "level" in updates:
            _validate_level(updates["level"])
        data = await self._client.request(
            "PATCH", _user_path(user_id, "temperature", "schedules", schedule_id), json=updates
        )
        return TemperatureSchedule.from_api((data or {}).get("schedule") or {})

    @_describe_failure("Failed to delete temperature schedule")
    async def delete_temperature_schedule(self, user_id: str, schedule_id: str) -> None:
        await self._client.request(
            "DELETE", _user_path(user_id, "temperature", "schedules", schedule_id)
        )

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------
    @_describe_failure("Failed to get user preferences")
    async def get_user_preferences(self, user_id: str) -> UserPreferences:
        data = await self._client.request("GET", _user_path(user_id, "preferences"))
        return UserPreferences.from_api((data or {}).get("preferences") or {})

    @_describe_failure("Failed to update user preferences")
    async def update_user_preferences(
        self, user_id: str, preferences: dict[str, Any]
    ) -> UserPreferences:
        data = await self._client.request(
            "PATCH", _user_path(user_id, "preferences"), json=preferences
        )
        return UserPreferences.from_api((data or {}).get("preferences") or {})
