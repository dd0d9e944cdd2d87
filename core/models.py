# =============================================================================
# core/models.py  -  Data Models (the "nouns" of the system)
# =============================================================================
#
# These dataclasses are the simplified shapes the tools hand back to the
# agent.  The vendor JSON is richer and camelCased; each model with a
# from_api() classmethod knows how to pull its fields out of one vendor
# object and tolerates missing keys (they become None).
#
# Nothing here talks to the network.  The tools layer converts these to
# dicts with dataclasses.asdict() before they go over MCP.
# =============================================================================

from dataclasses import dataclass, field
from typing import Any, Optional


# -----------------------------------------------------------------------------
# AccessToken - the bearer credential held by EightSleepClient
# -----------------------------------------------------------------------------
# expires_in is recorded from the login response but never consulted:
# expiry is detected when the API answers 401.
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class AccessToken:
    """Bearer token returned by the Eight Sleep token endpoint."""

    token: str = field(repr=False)
    expires_in: Optional[int] = None


# -----------------------------------------------------------------------------
# TemperatureState - what get_temperature returns
# -----------------------------------------------------------------------------
@dataclass
class TemperatureState:
    """Current and target heating level of the bed."""

    current: Optional[int]             # currentState.level
    target: Optional[int]              # currentLevel (-100..100)
    heating: bool = False              # target > 0
    cooling: bool = False              # target < 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TemperatureState":
        current = (data.get("currentState") or {}).get("level")
        target = data.get("currentLevel")
        return cls(
            current=current,
            target=target,
            heating=target is not None and target > 0,
            cooling=target is not None and target < 0,
        )


# -----------------------------------------------------------------------------
# Sleep metrics derived from the first day record of a trends query
# -----------------------------------------------------------------------------
@dataclass
class SleepScore:
    """Headline scores for one night."""

    total: Optional[int] = None
    hrv: Optional[int] = None
    breathing: Optional[int] = None
    toss_and_turns: Optional[int] = None

    @classmethod
    def from_day(cls, day: dict[str, Any]) -> "SleepScore":
        quality = day.get("sleepQualityScore") or {}
        return cls(
            total=day.get("score"),
            hrv=(quality.get("hrv") or {}).get("score"),
            breathing=(quality.get("respiratoryRate") or {}).get("score"),
            toss_and_turns=day.get("tnt"),
        )


@dataclass
class HrvReading:
    """Heart rate variability for one night."""

    date: str
    score: Optional[int] = None
    average: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    @classmethod
    def from_day(cls, date: str, day: dict[str, Any]) -> "HrvReading":
        hrv = (day.get("sleepQualityScore") or {}).get("hrv") or {}
        return cls(
            date=date,
            score=hrv.get("score"),
            average=hrv.get("average"),
            minimum=hrv.get("minimum"),
            maximum=hrv.get("maximum"),
        )


@dataclass
class HeartRate:
    """Heart rate summary for one night (beats per minute)."""

    average: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "HeartRate":
        return cls(average=data.get("average"), min=data.get("min"), max=data.get("max"))


@dataclass
class SleepTiming:
    """When the user went to bed and woke up."""

    bedtime: Optional[str] = None
    waketime: Optional[str] = None
    duration: Optional[int] = None     # seconds

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SleepTiming":
        return cls(
            bedtime=data.get("bedtime"),
            waketime=data.get("waketime"),
            duration=data.get("duration"),
        )


@dataclass
class FitnessTrend:
    """One day of the sleep fitness trend."""

    date: str
    score: Optional[int] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "FitnessTrend":
        return cls(date=data.get("date", ""), score=data.get("score"))


# -----------------------------------------------------------------------------
# Alarm / TemperatureSchedule - vendor-owned, id assigned on create
# -----------------------------------------------------------------------------
# days_of_week uses 0 = Sunday .. 6 = Saturday, same as the vendor.
# -----------------------------------------------------------------------------
@dataclass
class Alarm:
    """A wake-up alarm."""

    id: str
    enabled: bool
    time: str                          # "HH:mm"
    days_of_week: list[int] = field(default_factory=list)
    vibration: bool = True
    sound: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Alarm":
        return cls(
            id=str(data.get("id", "")),
            enabled=bool(data.get("enabled", False)),
            time=data.get("time", ""),
            days_of_week=list(data.get("daysOfWeek") or []),
            vibration=bool(data.get("vibration", False)),
            sound=data.get("sound"),
        )


@dataclass
class TemperatureSchedule:
    """A recurring temperature change."""

    id: str
    start_time: str                    # "HH:mm"
    level: int                         # -100..100
    days_of_week: list[int] = field(default_factory=list)
    enabled: bool = True

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "TemperatureSchedule":
        return cls(
            id=str(data.get("id", "")),
            start_time=data.get("startTime", ""),
            level=data.get("level", 0),
            days_of_week=list(data.get("daysOfWeek") or []),
            enabled=bool(data.get("enabled", False)),
        )


# -----------------------------------------------------------------------------
# UserPreferences / DeviceStatus
# -----------------------------------------------------------------------------
@dataclass
class UserPreferences:
    """Account-level preferences."""

    units: Optional[str] = None        # "imperial" | "metric"
    timezone: Optional[str] = None
    bed_side: Optional[str] = None     # "left" | "right" | None
    sleep_goal: Optional[int] = None   # minutes

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "UserPreferences":
        return cls(
            units=data.get("units"),
            timezone=data.get("timezone"),
            bed_side=data.get("bedSide") or None,
            sleep_goal=data.get("sleepGoal"),
        )


@dataclass
class DeviceStatus:
    """Connectivity and hardware state of the Pod."""

    online: bool = False
    firmware_version: Optional[str] = None
    last_seen: Optional[str] = None
    water_level: Optional[int] = None
    processing: Optional[bool] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "DeviceStatus":
        return cls(
            online=bool(data.get("online", False)),
            firmware_version=data.get("firmwareVersion"),
            last_seen=data.get("lastSeen"),
            water_level=data.get("waterLevel"),
            processing=data.get("processing"),
        )
