from datetime import datetime

import pytest

from agent_runtime.core.context import RunContext
from agent_runtime.tools import builtin
from agent_runtime.tools.schemas import GetCurrentTimeInput, GetLatestNewsInput, GetWeatherInput

WEATHER_PAGE = """
<html><body>
<div class="article_anywhere">
  <p>Unrelated block</p>
</div>
<div class="article_anywhere">
  <h3>Weather Forecast for Main Cities</h3>
  <p>Showers will occur in the Western province.</p>
  <p></p>
  <p>Fairly strong winds are expected.</p>
  <table style="border: none; border-collapse: collapse;">
    <tr><td>City</td><td>Max</td><td>Min</td><td>RH max</td><td>RH min</td><td>Weather</td></tr>
    <tr><td>Colombo</td><td>31</td><td>25</td><td>85</td><td>70</td><td>Showers</td></tr>
    <tr><td>Kandy</td><td>29</td><td>20</td><td>90</td><td>65</td><td>Cloudy</td></tr>
    <tr><td colspan="6">footnote</td></tr>
  </table>
  <p>After the table</p>
</div>
</body></html>
"""

NEWS_PAGE = """
<div class="news-story">
  <h2 class="hidden-xs"><a href="https://example.lk/news/1">Rain warning issued Rain warning issued</a></h2>
  <p>Heavy rain expected tonight.</p>
  <div class="comments"><span>2 comments | October 18, 2026 10:15 am</span></div>
  <div class="thumb-image"><img src="https://example.lk/img/1.jpg"></div>
</div>
<div class="news-story">
  <h2 class="hidden-xs"><a href="https://example.lk/news/2">Markets close higher</a></h2>
  <p>Stocks rallied.</p>
</div>
<div class="news-story">
  <h2 class="visible-xs"><a href="https://example.lk/news/3">Mobile only headline</a></h2>
</div>
"""


def test_get_current_time_defaults_to_utc_iso() -> None:
    output = builtin.get_current_time(RunContext(), GetCurrentTimeInput())

    parsed = datetime.fromisoformat(output.current_time)
    assert parsed.utcoffset().total_seconds() == 0


def test_get_current_time_with_location_and_format() -> None:
    output = builtin.get_current_time(
        RunContext(), GetCurrentTimeInput(location="Asia/Colombo", format="%z")
    )

    assert output.current_time == "+0530"


def test_get_current_time_rejects_unknown_location() -> None:
    with pytest.raises(ValueError, match="invalid location: Mars/Olympus"):
        builtin.get_current_time(RunContext(), GetCurrentTimeInput(location="Mars/Olympus"))


def test_parse_weather_page() -> None:
    output = builtin.parse_weather_page(WEATHER_PAGE)

    assert output.weather_summary == (
        "Showers will occur in the Western province.\n\nFairly strong winds are expected."
    )
    assert [forecast.city for forecast in output.city_forecasts] == ["Colombo", "Kandy"]
    colombo = output.city_forecasts[0]
    assert colombo.max_temperature_c == "31"
    assert colombo.min_relative_humidity_percent == "70"
    assert colombo.weather_description == "Showers"


def test_parse_weather_page_without_forecast_block() -> None:
    output = builtin.parse_weather_page("<div class='article_anywhere'><p>nothing</p></div>")

    assert output.weather_summary == ""
    assert output.city_forecasts == []


def test_parse_news_page() -> None:
    items = builtin.parse_news_page(NEWS_PAGE)

    assert [item.title for item in items] == ["Rain warning issued", "Markets close higher"]
    first = items[0]
    assert first.description == "Heavy rain expected tonight."
    assert first.news_date == "October 18, 2026 10:15 am"
    assert first.image_url == "https://example.lk/img/1.jpg"
    assert first.news_url == "https://example.lk/news/1"
    assert items[1].news_date == ""
    assert items[1].image_url == ""


def test_parse_news_page_tolerates_unbalanced_markup() -> None:
    markup = (
        '<div class="news-story"><h2 class="hidden-xs"><a href="/n/9">Fuel prices cut</a></h2>'
        "<p>Prices drop at midnight.</span></div>"
        '<div class="news-story"><h2 class="hidden-xs"><a href="/n/10">Trains delayed</a></h2></div>'
    )

    items = builtin.parse_news_page(markup)

    assert [item.title for item in items] == ["Fuel prices cut", "Trains delayed"]
    assert items[0].description == "Prices drop at midnight."
    assert items[1].news_url == "/n/10"


def test_clean_title_keeps_unrepeated_titles() -> None:
    assert builtin.clean_title("  Budget   passed ") == "Budget passed"
    assert builtin.clean_title("A B A B") == "A B"


def test_weather_and_news_tools_fetch_pages(monkeypatch: pytest.MonkeyPatch) -> None:
    pages = {builtin.WEATHER_URL: WEATHER_PAGE, builtin.NEWS_URL: NEWS_PAGE}
    monkeypatch.setattr(builtin, "fetch_html", lambda url: pages[url])

    weather = builtin.get_weather(RunContext(), GetWeatherInput())
    news = builtin.get_latest_news(RunContext(), GetLatestNewsInput(limit=1))

    assert len(weather.city_forecasts) == 2
    assert [item.title for item in news.items] == ["Rain warning issued"]
