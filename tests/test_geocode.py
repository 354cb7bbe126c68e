"""
Tests for distance math and location lookup
"""
import pytest

from factories import make_job, make_professional
from treehub.services import geocode as geo
from treehub.services.agents import job_matching
from treehub.services.geocode import (
    NO_DISTANCE,
    _static_lookup,
    geocode,
    has_coordinates,
    haversine_miles,
    travel_distance,
)

PHILADELPHIA = (39.9526, -75.1652)
NEW_YORK = (40.7128, -74.0060)


@pytest.mark.unit
class TestDistance:
    """Tests for great-circle distance"""

    def test_philadelphia_to_new_york(self):
        """Test a known city pair lands in the right range"""
        miles = haversine_miles(*PHILADELPHIA, *NEW_YORK)
        assert 75 < miles < 90

    def test_same_point(self):
        """Test that a point is zero miles from itself"""
        assert haversine_miles(*PHILADELPHIA, *PHILADELPHIA) == 0

    def test_symmetry(self):
        """Test that distance does not depend on direction"""
        assert haversine_miles(*PHILADELPHIA, *NEW_YORK) == pytest.approx(haversine_miles(*NEW_YORK, *PHILADELPHIA))

    def test_zero_coordinates_are_valid(self):
        """Test that the equator and prime meridian count as coordinates"""
        assert has_coordinates(make_job(latitude=0.0, longitude=0.0)) is True
        assert has_coordinates(make_job(latitude=None)) is False

    def test_travel_distance(self):
        """Test distance between a contractor and a job"""
        pro = make_professional()
        job = make_job(latitude=NEW_YORK[0], longitude=NEW_YORK[1])
        assert travel_distance(pro, job) == pytest.approx(haversine_miles(*PHILADELPHIA, *NEW_YORK))

    def test_travel_distance_unknown(self):
        """Test that missing coordinates give the sentinel distance"""
        assert travel_distance(make_professional(longitude=None), make_job()) == NO_DISTANCE


@pytest.mark.unit
class TestStaticLookup:
    """Tests for the built-in location table"""

    def test_exact_city(self):
        assert _static_lookup("Philadelphia") == PHILADELPHIA

    def test_city_prefix(self):
        """Test that 'City of' names resolve to the city"""
        assert _static_lookup("City of Philadelphia") == PHILADELPHIA
        assert _static_lookup("city of philadelphia, pa") == PHILADELPHIA

    def test_contained_name(self):
        """Test that a known city inside a longer address resolves"""
        assert _static_lookup("1500 Market St, Philadelphia, PA") == PHILADELPHIA

    def test_unknown(self):
        assert _static_lookup("Xyzzyville") is None

    def test_state_suffix_pins_state(self):
        """Test that a same-named city in another state does not resolve"""
        assert _static_lookup("Portland, ME") is None
        assert _static_lookup("Arlington, VA") is None
        assert _static_lookup("Portland, OR") == (45.5152, -122.6784)

    def test_whole_word_match(self):
        """Test that a city name inside a longer word does not match"""
        assert _static_lookup("Miamisburg, OH") is None
        assert _static_lookup("Miamisburg") is None
        assert _static_lookup("downtown Miami") == (25.7617, -80.1918)


@pytest.mark.integration
class TestGeocode:
    """Tests for the async geocoder"""

    async def test_empty_location(self):
        assert await geocode("") is None

    async def test_static_hit_skips_network(self, monkeypatch):
        """Test that known cities never call Nominatim"""
        def no_network(*args, **kwargs):
            raise AssertionError("network used")

        monkeypatch.setattr(geo.httpx, "AsyncClient", no_network)
        assert await geocode("Philadelphia, PA") == PHILADELPHIA

    async def test_failed_lookup_is_cached(self, monkeypatch):
        """Test that a failed Nominatim call caches None"""
        calls = []

        def broken_client(*args, **kwargs):
            calls.append(1)
            raise RuntimeError("offline")

        async def no_sleep(seconds):
            return None

        monkeypatch.setattr(geo.httpx, "AsyncClient", broken_client)
        monkeypatch.setattr(geo.asyncio, "sleep", no_sleep)
        monkeypatch.setattr(geo, "_cache", {})

        assert await geocode("Xyzzyville") is None
        assert await geocode("Xyzzyville") is None
        assert len(calls) == 1

    async def test_job_in_other_state_is_not_misplaced(self, monkeypatch):
        """Test that a job in Portland, ME is not given Portland, OR coordinates"""
        async def offline(location, country="us"):
            return _static_lookup(location)

        monkeypatch.setattr(job_matching, "geocode", offline)
        job = make_job(city="Portland", state="ME", latitude=None, longitude=None)

        await job_matching.locate_job(job)

        assert job.latitude is None
