"""
Weather advisories

Fetches OpenWeather One Call 3.0 data for a coordinate and shapes it into
the advisory served to the app: current conditions, a 5-day outlook,
official alerts and a narrative about the impact on shelters.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

import config
import narrative_service
from errors import WeatherError
from geo_service import round_half_up

logger = logging.getLogger(__name__)


def kelvin_to_celsius(kelvin: float) -> int:
    return round_half_up(kelvin - 273.15)


def map_icon(icon_code: Optional[str]) -> str:
    """Map an OpenWeather icon code such as "10d" onto the app's icon set."""
    code = icon_code or ""
    if code.startswith("01"):
        return "Sun"
    if code.startswith("02"):
        return "Cloudy"
    if code.startswith("03") or code.startswith("04"):
        return "Cloud"
    if code.startswith("09"):
        return "CloudDrizzle"
    if code.startswith("10"):
        return "CloudRain"
    if code.startswith("11"):
        return "CloudLightning"
    if code.startswith("13"):
        return "CloudSnow"
    if code.startswith("50"):
        return "CloudFog"
    return "Cloudy"


def alert_severity(event: str) -> str:
    return "Severe" if "warning" in (event or "").lower() else "Moderate"


class WeatherService:
    """Fetches and processes weather data from the OpenWeather One Call API"""

    BASE_URL = "https://api.openweathermap.org/data/3.0/onecall"

    @staticmethod
    def fetch_one_call(lat: float, lng: float) -> Dict[str, Any]:
        # Re-read key in case environment changed after import
        key = os.getenv("OPENWEATHER_API_KEY", config.OPENWEATHER_API_KEY)
        if not key:
            raise WeatherError("OPENWEATHER_API_KEY is not set in environment variables.", status_code=503)

        # No units param: temperatures come back in Kelvin
        params = {"lat": lat, "lon": lng, "appid": key}
        try:
            response = requests.get(WeatherService.BASE_URL, params=params, timeout=config.HTTP_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.error("[WeatherService] Error fetching weather: %s", e)
            raise WeatherError("An error occurred while fetching weather information.")

        if not response.ok:
            logger.error("[WeatherService] OneCall API error %s: %s", response.status_code, response.text[:300])
            raise WeatherError(
                f"Failed to fetch weather data. Status: {response.status_code}. "
                "Please check your OpenWeatherMap API key and subscription."
            )

        try:
            return response.json()
        except ValueError:
            raise WeatherError("Weather service returned an invalid response.")

    @staticmethod
    def extract_current(current: Dict[str, Any]) -> Dict[str, str]:
        weather = (current.get("weather") or [{}])[0]
        visibility_m = current.get("visibility")
        return {
            "temperature": f"{kelvin_to_celsius(current.get('temp', 273.15))}°C",
            "description": weather.get("description", ""),
            "humidity": f"{current.get('humidity', 0)}%",
            "windSpeed": f"{current.get('wind_speed', 0)} m/s",
            "visibility": f"{visibility_m / 1000:g} km" if visibility_m is not None else "N/A",
            "uvIndex": f"{round_half_up(current.get('uvi', 0))}",
        }

    @staticmethod
    def extract_forecast(daily: List[Dict[str, Any]], tz_offset: int = 0, days: int = 5) -> List[Dict[str, str]]:
        forecast = []
        for item in (daily or [])[:days]:
            weather = (item.get("weather") or [{}])[0]
            when = datetime.fromtimestamp(item.get("dt", 0), tz=timezone.utc) + timedelta(seconds=tz_offset)
            forecast.append(
                {
                    "day": when.strftime("%a"),
                    "temp": f"{kelvin_to_celsius((item.get('temp') or {}).get('day', 273.15))}°C",
                    "description": weather.get("description", ""),
                    "icon": map_icon(weather.get("icon")),
                }
            )
        return forecast

    @staticmethod
    def extract_alerts(alerts: List[Dict[str, Any]], tz_offset: int = 0) -> List[Dict[str, str]]:
        result = []
        for alert in alerts or []:
            end = datetime.fromtimestamp(alert.get("end", 0), tz=timezone.utc) + timedelta(seconds=tz_offset)
            result.append(
                {
                    "title": alert.get("event", ""),
                    "description": alert.get("description", ""),
                    "area": alert.get("sender_name", ""),
                    "severity": alert_severity(alert.get("event", "")),
                    "activeUntil": end.strftime("%H:%M"),
                }
            )
        return result

    @staticmethod
    def get_weather(lat: float, lng: float) -> Dict[str, Any]:
        data = WeatherService.fetch_one_call(lat, lng)
        tz_offset = int(data.get("timezone_offset") or 0)
        local_now = datetime.now(timezone.utc) + timedelta(seconds=tz_offset)

        current = data.get("current") or {}
        daily = data.get("daily") or []
        alerts = data.get("alerts") or []

        return {
            "narrativeSummary": narrative_service.weather_narrative(data, local_now.strftime("%H:%M")),
            "currentConditions": WeatherService.extract_current(current),
            "forecast": WeatherService.extract_forecast(daily, tz_offset),
            "alerts": WeatherService.extract_alerts(alerts, tz_offset),
            "shelterImpact": narrative_service.shelter_impact(daily, alerts),
            "lastUpdated": local_now.strftime("%H:%M"),
        }
