"""Weather ingestion and storm detection.

Pulls current conditions and the 5-day/3-hour forecast from OpenWeatherMap,
classifies storm conditions, and turns runs of stormy forecast entries into
StormEvent rows that the storm response agent acts on.
"""

import logging
from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from treehub.config import get_settings
from treehub.models.database import MonitorLog, StormEvent, WeatherReading
from treehub.services.geocode import MONITORED_CITIES, City

logger = logging.getLogger("treehub.weather")

# ─── CLASSIFICATION ──────────────────────────────────────────────────────────

STORM_CONDITIONS = ("Thunderstorm", "Tornado", "Squall")
HIGH_WIND_MPH = 25

WIND_DIRECTIONS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]

# Weather severity → storm scale used by lead generation
STORM_SCALE = {"Severe": "Severe", "High": "Major", "Medium": "Moderate", "Low": "Minor"}


def is_storm_condition(condition: str, wind_speed: float, threshold: float = HIGH_WIND_MPH) -> bool:
    return condition in STORM_CONDITIONS or wind_speed > threshold


def storm_type(condition: str, wind_speed: float) -> str:
    if condition in ("Thunderstorm", "Tornado"):
        return condition
    if wind_speed > 40:
        return "High Wind Event"
    if wind_speed > 25:
        return "Wind Advisory"
    return "Weather Event"


def weather_severity(condition: str, wind_speed: float, temperature: float) -> str:
    if condition == "Tornado" or wind_speed > 50:
        return "Severe"
    if condition == "Thunderstorm" or wind_speed > 35:
        return "High"
    if wind_speed > 20 or temperature < 32:
        return "Medium"
    return "Low"


def alert_level(wind_speed: float) -> str:
    if wind_speed > 50:
        return "Emergency"
    if wind_speed > 35:
        return "Warning"
    if wind_speed > 20:
        return "Watch"
    return "Advisory"


def wind_direction(degrees: float) -> str:
    return WIND_DIRECTIONS[round(degrees / 22.5) % 16]


def impact_radius(severity: str) -> int:
    return {"Severe": 50, "High": 30, "Medium": 15}.get(severity, 10)


def predicted_damage(wind_speed: float, severity: str) -> str:
    if wind_speed > 50 or severity == "Severe":
        return "High"
    if wind_speed > 35 or severity == "High":
        return "Medium"
    return "Low"


def service_demand(wind_speed: float, severity: str) -> str:
    if wind_speed > 50 or severity == "Severe":
        return "Extreme"
    if wind_speed > 35 or severity == "High":
        return "High"
    if wind_speed > 25 or severity == "Medium":
        return "Medium"
    return "Low"


def identify_storm_periods(forecast: list[dict], threshold: float = HIGH_WIND_MPH) -> list[dict]:
    """Merge consecutive stormy forecast entries into periods.

    The period keeps the type and severity of its first entry and tracks
    the maximum wind speed seen.
    """
    periods = []
    current = None

    for item in forecast:
        weather = item["weather"][0]
        wind = item["wind"]["speed"]
        at = datetime.utcfromtimestamp(item["dt"])

        if is_storm_condition(weather["main"], wind, threshold):
            if current is None:
                current = {
                    "start_time": at,
                    "end_time": at,
                    "type": storm_type(weather["main"], wind),
                    "max_wind_speed": wind,
                    "severity": weather_severity(weather["main"], wind, item["main"]["temp"]),
                    "forecast": [item],
                }
            else:
                current["end_time"] = at
                current["max_wind_speed"] = max(current["max_wind_speed"], wind)
                current["forecast"].append(item)
        elif current is not None:
            periods.append(current)
            current = None

    if current is not None:
        periods.append(current)
    return periods


def parse_current_weather(data: dict, city: str, state: str, threshold: float = HIGH_WIND_MPH) -> WeatherReading:
    """Build a WeatherReading from an OpenWeatherMap /weather payload."""
    weather = data["weather"][0]
    wind = data.get("wind", {})
    speed = wind.get("speed", 0)
    main = data.get("main", {})
    storm = is_storm_condition(weather["main"], speed, threshold)
    precip = (data.get("rain") or {}).get("1h") or (data.get("snow") or {}).get("1h") or 0

    return WeatherReading(
        city=city,
        state=state,
        latitude=data.get("coord", {}).get("lat"),
        longitude=data.get("coord", {}).get("lon"),
        temperature=main.get("temp"),
        humidity=main.get("humidity"),
        pressure=main.get("pressure"),
        wind_speed=speed,
        wind_direction=wind_direction(wind.get("deg", 0)),
        precipitation=precip,
        condition=weather["main"],
        description=weather.get("description", ""),
        visibility=data["visibility"] / 1000 if data.get("visibility") is not None else None,
        is_storm=storm,
        storm_type=storm_type(weather["main"], speed) if storm else None,
        severity=weather_severity(weather["main"], speed, main.get("temp", 60)),
        alert_level=alert_level(speed) if storm else None,
        recorded_at=datetime.utcfromtimestamp(data["dt"]) if data.get("dt") else datetime.utcnow(),
    )


# ─── OPENWEATHERMAP ──────────────────────────────────────────────────────────

@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type((httpx.TransportError, httpx.HTTPStatusError)),
    reraise=True,
)
async def _fetch(endpoint: str, params: dict) -> dict:
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.weather_timeout_seconds) as client:
        resp = await client.get(
            f"{settings.openweather_base_url}/{endpoint}",
            params={**params, "appid": settings.openweather_api_key, "units": "imperial"},
        )
        resp.raise_for_status()
        return resp.json()


async def get_current_weather(lat: float, lon: float) -> Optional[dict]:
    try:
        return await _fetch("weather", {"lat": lat, "lon": lon})
    except Exception as e:
        logger.error(f"Current weather fetch failed for ({lat}, {lon}): {e}")
        return None


async def get_forecast(lat: float, lon: float, cnt: int = 40) -> Optional[dict]:
    try:
        return await _fetch("forecast", {"lat": lat, "lon": lon, "cnt": cnt})
    except Exception as e:
        logger.error(f"Forecast fetch failed for ({lat}, {lon}): {e}")
        return None


# ─── PERSISTENCE ─────────────────────────────────────────────────────────────

async def record_storm_periods(
    session: AsyncSession,
    periods: list[dict],
    city: str,
    state: str,
    lat: float,
    lon: float,
) -> list[StormEvent]:
    """Create StormEvents for new periods. Returns only newly created events.

    A period already stored for the same city, type and start time is skipped.
    """
    created = []
    for period in periods:
        existing = await session.execute(
            select(StormEvent.id).where(
                StormEvent.city == city,
                StormEvent.state == state,
                StormEvent.storm_type == period["type"],
                StormEvent.start_time == period["start_time"],
            )
        )
        if existing.scalar_one_or_none():
            continue

        severity = period["severity"]
        wind = period["max_wind_speed"]
        event = StormEvent(
            name=f"{period['type']} - {city}, {state}",
            storm_type=period["type"],
            severity=STORM_SCALE.get(severity, "Minor"),
            alert_level=alert_level(wind),
            city=city,
            state=state,
            affected_cities=[{"city": city, "state": state}],
            affected_states=[state],
            latitude=lat,
            longitude=lon,
            max_wind_speed=wind,
            impact_radius=impact_radius(severity),
            duration_hours=round((period["end_time"] - period["start_time"]).total_seconds() / 3600),
            predicted_damage=predicted_damage(wind, severity),
            service_demand=service_demand(wind, severity),
            start_time=period["start_time"],
            end_time=period["end_time"],
            status="ACTIVE",
        )
        session.add(event)
        created.append(event)

    if created:
        await session.flush()
    return created


async def active_storms(session: AsyncSession, state: Optional[str] = None) -> list[StormEvent]:
    query = select(StormEvent).where(StormEvent.status == "ACTIVE").order_by(StormEvent.start_time.desc())
    if state:
        query = query.where(StormEvent.state == state)
    result = await session.execute(query)
    return list(result.scalars().all())


async def latest_readings(session: AsyncSession, limit: int = 100) -> list[WeatherReading]:
    result = await session.execute(
        select(WeatherReading).order_by(WeatherReading.recorded_at.desc()).limit(limit)
    )
    return list(result.scalars().all())


# ─── SWEEP ───────────────────────────────────────────────────────────────────

async def run_weather_sweep(
    session: AsyncSession,
    threshold: float = HIGH_WIND_MPH,
    cities: Optional[list[City]] = None,
) -> tuple[MonitorLog, list[StormEvent]]:
    """Poll every monitored city, store readings, and record new storms.

    Each city runs in its own savepoint so one bad payload only loses that
    city.  Returns the sweep log and the storm events created by it.
    """
    cities = MONITORED_CITIES if cities is None else cities
    log = MonitorLog(started_at=datetime.utcnow(), status="running")
    session.add(log)
    await session.flush()

    if not get_settings().openweather_api_key:
        log.finished_at = datetime.utcnow()
        log.status = "error"
        log.error_message = "OpenWeather API key not configured"
        logger.warning("Weather sweep skipped: no OpenWeather API key")
        return log, []

    new_storms: list[StormEvent] = []
    readings = 0
    failures = []

    for c in cities:
        try:
            city_readings, city_storms = 0, []
            async with session.begin_nested():
                current = await get_current_weather(c.lat, c.lon)
                if current:
                    session.add(parse_current_weather(current, c.city, c.state, threshold))
                    city_readings += 1

                forecast = await get_forecast(c.lat, c.lon)
                if forecast:
                    periods = identify_storm_periods(forecast.get("list", []), threshold)
                    city_storms = await record_storm_periods(session, periods, c.city, c.state, c.lat, c.lon)
            # Counted only once the savepoint has committed
            readings += city_readings
            new_storms += city_storms
        except Exception as e:
            failures.append(f"{c.city}, {c.state}: {e}")
            logger.error(f"Weather sweep failed for {c.city}, {c.state}: {e}")

    log.finished_at = datetime.utcnow()
    log.cities_checked = len(cities)
    log.readings_stored = readings
    log.storms_detected = len(new_storms)
    log.status = "error" if failures and len(failures) == len(cities) else "success"
    if failures:
        log.error_message = "; ".join(failures)[:500]
    await session.flush()

    logger.info(f"Weather sweep: {len(cities)} cities, {readings} readings, {len(new_storms)} new storms")
    return log, new_storms
