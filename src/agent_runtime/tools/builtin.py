"""Inbuilt tool implementations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from bs4 import Tag

from agent_runtime.core.context import RunContext
from agent_runtime.tools.schemas import (
    CityForecast,
    GetCurrentTimeInput,
    GetCurrentTimeOutput,
    GetLatestNewsInput,
    GetLatestNewsOutput,
    GetWeatherInput,
    GetWeatherOutput,
    NewsItem,
)
from agent_runtime.tools.scraping import fetch_html, parse_html

logger = logging.getLogger(__name__)

WEATHER_URL = "https://meteo.gov.lk/index.php?lang=en"
WEATHER_MARKER = "Weather Forecast for Main Cities"
WEATHER_TABLE_STYLE = "border: none; border-collapse: collapse;"
NEWS_URL = "https://www.adaderana.lk/hot-news/"


def get_current_time(ctx: RunContext, payload: GetCurrentTimeInput) -> GetCurrentTimeOutput:
    tz = timezone.utc
    if payload.location:
        try:
            tz = ZoneInfo(payload.location)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"invalid location: {payload.location}") from exc

    now = datetime.now(tz)
    if payload.format:
        current_time = now.strftime(payload.format)
    else:
        current_time = now.isoformat(timespec="seconds")
    return GetCurrentTimeOutput(current_time=current_time)


def get_weather(ctx: RunContext, payload: GetWeatherInput) -> GetWeatherOutput:
    return parse_weather_page(fetch_html(WEATHER_URL))


def get_latest_news(ctx: RunContext, payload: GetLatestNewsInput) -> GetLatestNewsOutput:
    items = parse_news_page(fetch_html(NEWS_URL))
    return GetLatestNewsOutput(items=items[: payload.limit])


def parse_weather_page(markup: str) -> GetWeatherOutput:
    root = parse_html(markup)
    for container in root.find_all("div", class_="article_anywhere"):
        if WEATHER_MARKER not in container.get_text():
            continue
        return GetWeatherOutput(
            weather_summary=_weather_summary(container),
            city_forecasts=_city_forecasts(container),
        )

    logger.warning("City forecast container not found url=%s", WEATHER_URL)
    return GetWeatherOutput()


def _weather_summary(container: Tag) -> str:
    paragraphs: list[str] = []
    for child in container.find_all(recursive=False):
        if child.name == "table":
            break
        if child.name != "p":
            continue
        text = child.get_text().strip()
        if text:
            paragraphs.append(text)
    return "\n\n".join(paragraphs)


def _city_forecasts(container: Tag) -> list[CityForecast]:
    forecasts: list[CityForecast] = []
    for table in container.find_all("table"):
        if table.get("style", "").strip() != WEATHER_TABLE_STYLE:
            continue
        for index, row in enumerate(table.find_all("tr")):
            cells = [cell.get_text().strip() for cell in row.find_all("td")]
            if len(cells) < 6:
                continue
            if index == 0 and "city" in cells[0].lower():
                continue
            forecasts.append(
                CityForecast(
                    city=cells[0],
                    max_temperature_c=cells[1],
                    min_temperature_c=cells[2],
                    max_relative_humidity_percent=cells[3],
                    min_relative_humidity_percent=cells[4],
                    weather_description=cells[5],
                )
            )
    return forecasts


def parse_news_page(markup: str) -> list[NewsItem]:
    root = parse_html(markup)
    items: list[NewsItem] = []
    for story in root.find_all(class_="news-story"):
        headline = story.find("h2", class_="hidden-xs")
        link = headline.find("a") if headline else None
        if link is None:
            continue

        paragraph = story.find("p")
        comments = story.find(class_="comments")
        date_span = comments.find("span") if comments else None
        thumb = story.find(class_="thumb-image")
        image = thumb.find("img") if thumb else None

        items.append(
            NewsItem(
                title=clean_title(link.get_text()),
                description=paragraph.get_text().strip() if paragraph else "",
                news_date=_news_date(date_span.get_text() if date_span else ""),
                image_url=image.get("src", "") if image else "",
                news_url=link.get("href", ""),
            )
        )
    return items


def _news_date(raw: str) -> str:
    parts = raw.split("|")
    if len(parts) < 2:
        return raw.strip()
    return parts[1].strip()


def clean_title(title: str) -> str:
    """Drop a word sequence the page repeats at the end of a headline."""
    words = title.split()
    for size in range(1, len(words) // 2 + 1):
        if words[-size:] == words[-2 * size : -size]:
            return " ".join(words[:-size])
    return " ".join(words)
