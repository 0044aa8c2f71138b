from langchain_core.tools import tool
from core.config import WEATHER_API_URL
import httpx


# Weather tool ................
@tool
async def get_weather(latitude: float, longitude: float) -> dict:

    """Get the current weather at a location."""

    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": "temperature_2m",
        "hourly": "temperature_2m",
        "daily": "sunrise,sunset",
        "timezone": "auto",
    }

    async with httpx.AsyncClient(timeout=httpx.Timeout(15)) as client:
        try:
            r = await client.get(WEATHER_API_URL, params=params)
            r.raise_for_status()
            return r.json()
        except Exception as exc:
            return {"error": str(exc)}
