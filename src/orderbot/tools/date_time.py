"""Store-local date and time, for questions like "can you deliver tomorrow?"."""

from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

from orderbot.tools.base import BaseTool

DEFAULT_TIMEZONE = "Australia/Sydney"
DEFAULT_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
WEEKEND = (5, 6)  # Saturday, Sunday


def next_business_day(moment: datetime) -> datetime:
    """The first Monday-to-Friday day strictly after ``moment``."""
    day = moment + timedelta(days=1)
    while day.weekday() in WEEKEND:
        day += timedelta(days=1)
    return day


class DateTimeTool(BaseTool):
    """Current date and time in the store's timezone (or any IANA zone).

    Besides the timestamp it reports whether today is a weekend and the
    next business day, which is the earliest a new order can ship.
    """

    def __init__(
        self,
        default_timezone: str = DEFAULT_TIMEZONE,
        clock: Callable[[tzinfo], datetime] = datetime.now,
    ) -> None:
        self._default_timezone = default_timezone
        self._clock = clock

    @property
    def name(self) -> str:
        return "get_current_datetime"

    @property
    def description(self) -> str:
        return (
            f"Get the current date and time (default timezone '{self._default_timezone}'), "
            "whether today is a weekend, and the next business day for delivery."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "timezone": {
                    "type": "string",
                    "description": "IANA timezone name, e.g. 'Australia/Perth' or 'UTC'.",
                },
                "format": {
                    "type": "string",
                    "description": f"strftime format for 'now'. Defaults to '{DEFAULT_FORMAT}'.",
                },
            },
            "additionalProperties": False,
        }

    async def execute(self, **kwargs: Any) -> dict:
        tz_name = (kwargs.get("timezone") or self._default_timezone).strip()
        fmt = kwargs.get("format") or DEFAULT_FORMAT

        try:
            zone = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(
                f"Unknown timezone '{tz_name}'. Use IANA names like '{DEFAULT_TIMEZONE}' or 'UTC'."
            ) from exc

        now = self._clock(zone)
        try:
            formatted = now.strftime(fmt)
        except ValueError as exc:
            logger.warning("Bad strftime format {!r}: {}", fmt, exc)
            formatted = now.isoformat()

        return {
            "now": formatted,
            "timezone": tz_name,
            "utc_offset": now.strftime("%z"),
            "day_of_week": now.strftime("%A"),
            "is_weekend": now.weekday() in WEEKEND,
            "next_business_day": next_business_day(now).strftime("%A %d/%m/%Y"),
        }
