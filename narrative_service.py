"""
Narrative text for weather advisories.

Uses the Hugging Face inference API when HF_API_TOKEN is configured and
falls back to summaries built directly from the forecast data.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import requests

import config
from geo_service import round_half_up

logger = logging.getLogger(__name__)

HF_BASE_URL = "https://api-inference.huggingface.co/models"


def generate_text(prompt: str, max_new_tokens: int = 160) -> Optional[str]:
    # Re-read token in case environment changed after import
    token = os.getenv("HF_API_TOKEN", config.HF_API_TOKEN)
    if not token:
        return None

    model = os.getenv("HF_MODEL", config.HF_MODEL)
    try:
        response = requests.post(
            f"{HF_BASE_URL}/{model}",
            headers={"Authorization": f"Bearer {token}"},
            json={
                "inputs": prompt,
                "parameters": {"max_new_tokens": max_new_tokens, "return_full_text": False},
            },
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("[HuggingFace] Text generation failed: %s", e)
        return None

    if isinstance(data, list) and data:
        data = data[0]
    if not isinstance(data, dict):
        return None

    text = (data.get("generated_text") or "").strip()
    if text.startswith(prompt):
        text = text[len(prompt):].strip()
    return text or None


def _celsius(kelvin):
    return round_half_up(kelvin - 273.15)


def fallback_weather_narrative(current: Dict[str, Any], minutely: List[Dict[str, Any]], alerts: List[Dict[str, Any]]) -> str:
    parts = []
    if current:
        description = ((current.get("weather") or [{}])[0]).get("description", "")
        if "temp" in current:
            parts.append(f"Currently {_celsius(current['temp'])}°C with {description or 'steady conditions'}.")
        elif description:
            parts.append(f"Currently {description}.")

    wet_minutes = [m for m in (minutely or []) if (m.get("precipitation") or 0) > 0]
    if wet_minutes:
        parts.append("Precipitation expected within the next hour.")
    elif minutely:
        parts.append("No precipitation expected in the next hour.")

    for alert in alerts or []:
        parts.append(f"Alert in effect: {alert.get('event', 'weather alert')}.")

    return " ".join(parts) or "Weather data is available but no summary could be generated."


def fallback_shelter_impact(daily: List[Dict[str, Any]], alerts: List[Dict[str, Any]]) -> str:
    notes = []
    rainy_days = [d for d in daily or [] if (d.get("rain") or 0) >= 10]
    windy_days = [d for d in daily or [] if (d.get("wind_speed") or 0) >= 10]

    if rainy_days:
        notes.append(
            f"Heavy rain is forecast on {len(rainy_days)} of the next {len(daily)} days; "
            "expect flooding risk and harder access for supply vehicles. "
            "Shelter managers should prepare for higher demand."
        )
    if windy_days:
        notes.append("Strong winds are expected; secure tents and other temporary structures.")
    if alerts:
        names = ", ".join(a.get("event", "weather alert") for a in alerts)
        notes.append(f"Active alerts: {names}. People seeking shelter should move early.")
    if not notes:
        notes.append("No significant weather risk to shelters is expected in the coming days.")
    return " ".join(notes)


def weather_narrative(weather_data: Dict[str, Any], now_label: str) -> str:
    current = weather_data.get("current") or {}
    minutely = weather_data.get("minutely") or []
    alerts = weather_data.get("alerts") or []

    prompt = (
        "You are a helpful weather assistant. Based on the JSON weather data below "
        "(current conditions, minutely forecast for the next hour, and any alerts), "
        "write a short, human-friendly summary of the current and upcoming weather. "
        "Focus on significant changes like precipitation and mention severe alerts.\n"
        f"Current Time: {now_label}\n"
        f"Weather Data:\n{json.dumps({'current': current, 'minutely': minutely[:15], 'alerts': alerts}, default=str)}\n"
        "Summary:"
    )
    return generate_text(prompt) or fallback_weather_narrative(current, minutely, alerts)


def shelter_impact(daily: List[Dict[str, Any]], alerts: List[Dict[str, Any]]) -> str:
    prompt = (
        "You are an emergency management expert for displaced persons. Based on the "
        "7-day forecast and alerts below, analyse the potential impact on local shelters: "
        "flooding, access for people and supply vehicles, demand for shelter space and "
        "safety of temporary structures in high winds. Give concise, actionable advice.\n"
        f"Forecast Data:\n{json.dumps({'daily': daily, 'alerts': alerts}, default=str)}\n"
        "Analysis:"
    )
    return generate_text(prompt, max_new_tokens=220) or fallback_shelter_impact(daily, alerts)
