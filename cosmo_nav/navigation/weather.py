"""
Weather via wttr.in.

Answers weather questions with a sentence ready to speak.
"""

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from cosmo_nav.core.errors import NetworkFailure
from cosmo_nav.hardware.interfaces import IWeatherService
from cosmo_nav.navigation.models import Coord

logger = logging.getLogger(__name__)

DEFAULT_PLACE = "New York"


def format_weather_report(data: Dict[str, Any], fallback_name: str) -> str:
    """
    Build the spoken report from a wttr.in ``format=j1`` body.

    Raises:
        KeyError, IndexError: If the body lacks current conditions
    """
    current = data["current_condition"][0]
    area = data.get("nearest_area") or []
    name = fallback_name
    if area and area[0].get("areaName"):
        name = area[0]["areaName"][0].get("value") or fallback_name

    condition = current["weatherDesc"][0]["value"]
    return (
        f"The current weather in {name} is {current['temp_C']}°C or {current['temp_F']}°F. "
        f"It's {condition}. "
        f"It feels like {current['FeelsLikeC']}°C or {current['FeelsLikeF']}°F. "
        f"The humidity is {current['humidity']}% and wind speed is "
        f"{current['windspeedKmph']} kilometers per hour."
    )


class WttrWeatherService(IWeatherService):
    """Current conditions from wttr.in."""

    def __init__(
        self,
        url: str = "https://wttr.in",
        timeout_sec: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        self.url = url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    async def current_conditions(self, place: Optional[str] = None, near: Optional[Coord] = None) -> str:
        return await asyncio.to_thread(self.fetch_conditions, place, near)

    def fetch_conditions(self, place: Optional[str] = None, near: Optional[Coord] = None) -> str:
        """
        Fetch and format current weather (blocking).

        Args:
            place: Place name; takes precedence over ``near``
            near: Position used when no place is named

        Raises:
            NetworkFailure: If the request failed or the body was unusable
        """
        if place:
            target = place
        elif near is not None:
            target = f"{near.lat},{near.lon}"
        else:
            target = DEFAULT_PLACE

        logger.info(f"Fetching weather for: {target}")
        try:
            resp = self.session.get(
                f"{self.url}/{quote(target)}",
                params={"format": "j1"},
                timeout=self.timeout_sec,
            )
        except requests.RequestException as e:
            raise NetworkFailure("weather", str(e))
        if not resp.ok:
            raise NetworkFailure("weather", f"Status {resp.status_code}", resp.status_code)

        try:
            return format_weather_report(resp.json(), target)
        except (ValueError, KeyError, IndexError) as e:
            raise NetworkFailure("weather", f"Unexpected weather response: {e}")
