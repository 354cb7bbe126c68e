"""
Tests for storm response planning and lead generation
"""
import random
import re
from datetime import datetime, timedelta

import pytest

from factories import make_storm
from treehub.services.storm import (
    SERVICE_BASE_VALUES,
    build_alert,
    city_entries,
    effectiveness_score,
    equipment_needs,
    estimate_lead_value,
    estimated_job_volume,
    fake_email,
    fake_phone,
    fake_zip,
    generate_storm_leads,
    lead_urgency,
    leads_per_city,
    revenue_projection,
    storm_instructions,
)

NOW = datetime(2024, 6, 15, 12, 0)


@pytest.mark.unit
class TestLeadGeneration:
    """Tests for synthetic storm leads"""

    def test_volume_by_severity(self):
        """Test the per-city lead volume for each severity"""
        assert [leads_per_city(s) for s in ("Extreme", "Severe", "Major", "Moderate", "Minor")] == [50, 30, 20, 10, 5]
        assert leads_per_city("Unheard-of") == 5

    def test_leads_for_every_city(self):
        """Test that each affected city gets its share of leads"""
        leads = generate_storm_leads(make_storm(), random.Random(1))

        assert len(leads) == 60
        assert sum(1 for lead in leads if lead["city"] == "Philadelphia") == 30
        assert sum(1 for lead in leads if lead["city"] == "Doylestown") == 30

    def test_lead_fields(self):
        """Test that leads are new storm-response leads with commission"""
        for lead in generate_storm_leads(make_storm(), random.Random(2)):
            assert lead["source"] == "Storm_Response"
            assert lead["status"] == "New"
            assert lead["urgency"] == "Immediate"
            assert lead["state"] == "PA"
            assert lead["service_type"] in SERVICE_BASE_VALUES
            assert lead["commission"] == pytest.approx(lead["estimated_value"] * 0.25)
            base = SERVICE_BASE_VALUES[lead["service_type"]] * 2.0
            assert base * 0.7 - 1 <= lead["estimated_value"] <= base * 1.3 + 1

    def test_seeded_generation_is_reproducible(self):
        """Test that the same seed produces the same leads"""
        storm = make_storm()
        assert generate_storm_leads(storm, random.Random(7)) == generate_storm_leads(storm, random.Random(7))

    def test_max_leads_caps_total(self):
        """Test that the cap applies across all cities"""
        leads = generate_storm_leads(make_storm(), random.Random(3), max_leads=25)
        assert len(leads) == 25
        assert {lead["city"] for lead in leads} == {"Philadelphia"}

    def test_no_cities_no_leads(self):
        """Test that a storm without affected cities yields nothing"""
        assert generate_storm_leads(make_storm(affected_cities=[]), random.Random(4)) == []

    def test_bare_city_names(self):
        """Test that bare city names take the first affected state"""
        storm = make_storm(affected_cities=["Trenton"], affected_states=["NJ"])
        assert city_entries(storm) == [("Trenton", "NJ")]

    def test_unknown_state(self):
        """Test that cities fall back to an unknown state"""
        storm = make_storm(affected_cities=["Nowhere"], affected_states=[], state="")
        assert city_entries(storm) == [("Nowhere", "Unknown")]

    def test_value_variance(self):
        """Test that lead values stay within 30% of the scaled base"""
        rng = random.Random(5)
        for _ in range(200):
            value = estimate_lead_value("Minor", "Unlisted", rng)
            assert 699 <= value <= 1301

    def test_urgency(self):
        """Test that critical storms make leads immediate"""
        assert lead_urgency("Extreme") == "Immediate"
        assert lead_urgency("Major") == "Within_Week"

    def test_contact_formats(self):
        """Test the shape of fabricated contact details"""
        rng = random.Random(6)
        assert re.match(r"^[a-z]+\.[a-z]+\d{1,3}@[a-z]+\.com$", fake_email(rng))
        assert re.match(r"^\d{3}-\d{3}-\d{4}$", fake_phone(rng))
        assert re.match(r"^\d{5}$", fake_zip(rng))


@pytest.mark.unit
class TestCrewAlert:
    """Tests for crew alerts and equipment staging"""

    def test_critical_equipment(self):
        """Test that critical storms add cranes and bucket trucks"""
        needs = {n["type"]: n["quantity"] for n in equipment_needs(make_storm())}
        assert needs == {"Chainsaw": 4, "Chipper": 1, "Crane": 1, "Bucket Truck": 2}

    def test_moderate_equipment(self):
        """Test that lesser storms only need saws and chippers"""
        storm = make_storm(severity="Moderate", affected_cities=["A", "B", "C"])
        needs = equipment_needs(storm)
        assert {n["type"]: n["quantity"] for n in needs} == {"Chainsaw": 6, "Chipper": 2}
        assert all(n["staging_location"] == "Central depot" for n in needs)

    def test_job_volume(self):
        """Test that job volume scales with cities and severity"""
        assert estimated_job_volume(make_storm()) == 60
        assert estimated_job_volume(make_storm(severity="Moderate", affected_cities=["A", "B", "C"])) == 45

    def test_high_wind_instructions(self):
        """Test that high winds add a caution line"""
        assert "High winds expected" in storm_instructions(make_storm(max_wind_speed=45))
        assert "High winds expected" not in storm_instructions(make_storm(max_wind_speed=30))

    def test_build_alert(self):
        """Test the alert sent to crews for a severe storm"""
        storm = make_storm(id=9)
        alert = build_alert(storm, crew_count=12, now=NOW)

        assert alert["storm_event_id"] == 9
        assert alert["priority"] == "CRITICAL"
        assert alert["title"] == "Thunderstorm Alert - Severe Severity"
        assert alert["crews_alerted"] == 12
        assert alert["wind_speed"] == 45
        assert alert["estimated_jobs"] == 60
        assert alert["affected_states"] == ["PA"]
        assert alert["response_deadline"] == NOW + timedelta(hours=4)

    def test_minor_alert_priority(self):
        """Test that non-critical storms send HIGH alerts"""
        assert build_alert(make_storm(severity="Minor"), 0, NOW)["priority"] == "HIGH"


@pytest.mark.unit
class TestOutcome:
    """Tests for revenue projection and effectiveness"""

    def test_revenue_projection(self):
        """Test that revenue is lead value times conversion and commission"""
        leads = [{"estimated_value": 1000}, {"estimated_value": 3000}]
        projection = revenue_projection(leads, "Severe")

        assert projection["total_lead_value"] == 4000
        assert projection["conversion_rate"] == 0.7
        assert projection["estimated"] == 700
        assert projection["leads"] == 2

    def test_effectiveness(self):
        """Test that effectiveness blends lead coverage with a severity bonus"""
        storm = make_storm()
        assert effectiveness_score(storm, 60) == 95
        assert effectiveness_score(storm, 10) == 55

    def test_effectiveness_without_cities(self):
        """Test that a storm with no cities only earns the severity bonus"""
        assert effectiveness_score(make_storm(affected_cities=[]), 0) == 15
