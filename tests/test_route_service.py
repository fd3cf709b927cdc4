"""
RouteService / OSRMClient against a mock backend, no network needed.
For the live server see tests/run_routing_integration.py.
"""

import time

import pytest
import requests

from routing.osrm_client import OSRMClient, OSRMError
from routing.route_service import RouteService

HARARE_CBD = (-17.8292, 31.0522)
AVONDALE = (-17.7990, 31.0390)


class MockOSRM:
    """Stands in for OSRMClient.compute_route."""
    def __init__(self, duration=None, error=None, delay=0.0):
        self.duration = duration
        self.error = error
        self.delay = delay
        self.calls = []

    def compute_route(self, coordinates):
        self.calls.append(list(coordinates))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"distance": 1000.0, "duration": self.duration}


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.ok = status_code < 400
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("not json")
        return self._body


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.urls = []

    def get(self, url, params=None, timeout=None):
        self.urls.append(url)
        return self.response


@pytest.mark.asyncio
@pytest.mark.parametrize("seconds, minutes", [(60, 1), (61, 2), (420, 7), (0.5, 1)])
async def test_duration_is_rounded_up_to_whole_minutes(seconds, minutes):
    service = RouteService(MockOSRM(duration=seconds))
    assert await service.travel_minutes(HARARE_CBD, AVONDALE) == minutes


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    OSRMError("NoRoute"),
    requests.ConnectionError("refused"),
    requests.Timeout("slow"),
    ValueError("bad input"),
])
async def test_backend_failures_become_no_estimate(error):
    service = RouteService(MockOSRM(error=error))
    assert await service.travel_minutes(HARARE_CBD, AVONDALE) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("duration", [None, 0, -10, float("nan"), "600"])
async def test_unusable_duration_becomes_no_estimate(duration):
    service = RouteService(MockOSRM(duration=duration))
    assert await service.travel_minutes(HARARE_CBD, AVONDALE) is None


@pytest.mark.asyncio
async def test_slow_backend_is_cut_off():
    service = RouteService(MockOSRM(duration=300, delay=0.3), timeout_seconds=0.05)
    assert await service.travel_minutes(HARARE_CBD, AVONDALE) is None


@pytest.mark.asyncio
async def test_invalid_coordinates_never_reach_the_backend():
    client = MockOSRM(duration=300)
    service = RouteService(client)

    assert await service.travel_minutes((float("nan"), 31.0), AVONDALE) is None
    assert await service.travel_minutes(HARARE_CBD, (float("inf"), 31.0)) is None
    assert client.calls == []


def test_client_formats_lon_lat_and_normalizes_the_route():
    session = FakeSession(FakeResponse(body={"code": "Ok", "routes": [{"distance": 4200.0, "duration": 540.0}]}))
    client = OSRMClient(base_url="http://osrm.local/", session=session)

    route = client.compute_route([HARARE_CBD, AVONDALE])

    assert route == {"distance": 4200.0, "duration": 540.0}
    assert session.urls == ["http://osrm.local/route/v1/driving/31.0522,-17.8292;31.039,-17.799"]


@pytest.mark.parametrize("response", [
    FakeResponse(status_code=502),
    FakeResponse(status_code=400, body={"code": "InvalidQuery", "message": "bad"}),
    FakeResponse(body={"code": "Ok", "routes": []}),
])
def test_client_raises_on_bad_responses(response):
    client = OSRMClient(base_url="http://osrm.local", session=FakeSession(response))
    with pytest.raises(OSRMError):
        client.compute_route([HARARE_CBD, AVONDALE])


def test_client_needs_two_points():
    client = OSRMClient(base_url="http://osrm.local", session=FakeSession(FakeResponse()))
    with pytest.raises(ValueError):
        client.compute_route([HARARE_CBD])
