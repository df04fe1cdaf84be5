"""Strict Pydantic schemas for inbuilt tool inputs and outputs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class GetCurrentTimeInput(StrictModel):
    format: str = Field(
        default="",
        description=(
            "strftime format string, e.g. '%Y-%m-%d %H:%M:%S'. "
            "Defaults to ISO 8601 (2006-01-02T15:04:05+00:00)."
        ),
    )
    location: str = Field(
        default="",
        description="IANA time zone identifier (e.g. 'Asia/Colombo', 'America/New_York').",
    )


class GetCurrentTimeOutput(StrictModel):
    current_time: str = Field(description="Current time formatted as requested.")


class GetWeatherInput(StrictModel):
    pass


class CityForecast(StrictModel):
    city: str
    max_temperature_c: str = ""
    min_temperature_c: str = ""
    max_relative_humidity_percent: str = ""
    min_relative_humidity_percent: str = ""
    weather_description: str = ""


class GetWeatherOutput(StrictModel):
    weather_summary: str = ""
    city_forecasts: list[CityForecast] = Field(default_factory=list)


class GetLatestNewsInput(StrictModel):
    limit: int = Field(default=10, ge=1, le=50, description="Maximum number of stories.")


class NewsItem(StrictModel):
    title: str
    description: str = ""
    news_date: str = ""
    image_url: str = ""
    news_url: str = ""


class GetLatestNewsOutput(StrictModel):
    items: list[NewsItem] = Field(default_factory=list)
