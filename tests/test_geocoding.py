import httpx
import pytest

from core.db.flights import create_airport, get_airport_by_iata
from core.geocoding import GeoResult, NominatimGeocoder, geocode_missing_airports


def _geocoder(handler, sleeps=None, **kwargs):
    sleeps = sleeps if sleeps is not None else []
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return NominatimGeocoder(client=client, base_url="https://geo.test/search", sleep=sleeps.append, **kwargs)


def test_geocode_parses_first_result():
    seen = {}

    def handler(request):
        seen["q"] = request.url.params["q"]
        seen["ua"] = request.headers["user-agent"]
        return httpx.Response(200, json=[{"lat": "64.0", "lon": "-22.6", "address": {"country_code": "is"}}])

    result = _geocoder(handler).geocode("Keflavik", "Reykjavik")
    assert result == GeoResult(64.0, -22.6, "IS")
    assert seen["q"] == "Keflavik Reykjavik airport"
    assert seen["ua"].startswith("PersonalSite-FlightTracker")


def test_geocode_without_city_or_country_code():
    def handler(request):
        return httpx.Response(200, json=[{"lat": "1.5", "lon": "2.5"}])

    result = _geocoder(handler).geocode("Somewhere")
    assert result.country_code == "XX"


def test_geocode_retries_with_backoff_then_succeeds():
    calls = []

    def handler(request):
        calls.append(1)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json=[{"lat": "10", "lon": "20"}])

    sleeps = []
    result = _geocoder(handler, sleeps, retry_delay=1.0).geocode("X")
    assert result.latitude == 10.0
    assert sleeps == [1.0, 2.0]


def test_geocode_gives_up_after_max_retries():
    def handler(request):
        return httpx.Response(200, json=[])

    sleeps = []
    assert _geocoder(handler, sleeps, max_retries=2, retry_delay=0.5).geocode("Nowhere") is None
    assert sleeps == [0.5, 1.0]


def test_geocode_rejects_bad_coordinates():
    def handler(request):
        return httpx.Response(200, json=[{"lat": "north", "lon": "west"}])

    assert _geocoder(handler, max_retries=0).geocode("X") is None


class _FakeGeocoder:
    def __init__(self, answers):
        self.answers = answers
        self.queries = []

    def geocode(self, name, city=None):
        self.queries.append(name)
        return self.answers.get(name)


def _airports():
    create_airport({"iata_code": "KEF", "name": "Keflavik", "city": "Reykjavik"})
    create_airport({"iata_code": "ZZZ", "name": "Ghost Field", "latitude": 0, "longitude": 0})
    create_airport({"iata_code": "LHR", "name": "Heathrow", "latitude": 51.47, "longitude": -0.45})


def test_geocode_missing_airports_updates_coordinates():
    _airports()
    geocoder = _FakeGeocoder({"Keflavik": GeoResult(63.98, -22.6, "IS")})
    sleeps = []

    report = geocode_missing_airports(geocoder, batch_size=1, delay=0.25, sleep=sleeps.append)

    assert (report.total, report.processed, report.successful, report.failed) == (2, 2, 1, 1)
    assert report.errors == ["ZZZ: no coordinates found"]
    assert sorted(geocoder.queries) == ["Ghost Field", "Keflavik"]
    assert sleeps == [0.25, 0.25]
    kef = get_airport_by_iata("KEF")
    assert kef["latitude"] == pytest.approx(63.98)
    assert kef["country_code"] == "IS"


def test_geocode_missing_airports_dry_run_writes_nothing():
    _airports()
    geocoder = _FakeGeocoder({"Keflavik": GeoResult(63.98, -22.6, "IS"), "Ghost Field": GeoResult(0, 0)})

    report = geocode_missing_airports(geocoder, dry_run=True, delay=0)

    assert report.successful == 1
    assert report.failed == 1
    assert get_airport_by_iata("KEF")["latitude"] is None
