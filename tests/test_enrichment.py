"""Tests for enrichment report parsing and the /api/geo endpoint."""
import math

import pytest

from clicklog.core.config import Settings, get_settings
from clicklog.core.deps import get_click_store
from clicklog.main import app
from clicklog.schemas.click import GeoReport
from clicklog.services.click_store import ClickStore
from clicklog.services.enrichment import parse_report
from tests.conftest import FailingStore, make_click

CLICK_ID = "0123456789abcdef0123456789abcdef"


class SpyStore(ClickStore):
    """Store that records enrich calls instead of writing."""

    def __init__(self):
        self.enrich_calls = []

    async def enrich(self, click_id, values):
        self.enrich_calls.append((click_id, values))
        return 1


class TestGeoReport:
    def test_well_formed_report(self):
        report = GeoReport.model_validate({
            "lat": 59.91,
            "lon": 10.75,
            "accuracy": 12.5,
            "timestamp": 1700000000000,
            "consented": True,
            "platform": "MacIntel",
            "vendor": "Apple Computer, Inc.",
            "language": "nb-NO",
            "languages": ["nb-NO", "en-US"],
            "timezone": "Europe/Oslo",
            "hardwareConcurrency": 8,
            "deviceMemory": 8,
            "screenW": 1512,
            "screenH": 982,
            "colorDepth": 30,
            "doNotTrack": False,
        })
        columns = report.to_columns()

        assert columns["precise_lat"] == 59.91
        assert columns["precise_accuracy_m"] == 12.5
        assert columns["precise_timestamp"] == "1700000000000"
        assert columns["device_languages"] == "nb-NO,en-US"
        assert columns["device_hardware_concurrency"] == 8
        assert columns["device_screen_w"] == 1512
        assert columns["do_not_track"] is False

    @pytest.mark.parametrize("value", ["10.5", True, None, [1], {"v": 1}, math.nan, math.inf])
    def test_non_numeric_coordinates_become_absent(self, value):
        report = GeoReport.model_validate({"lat": value, "lon": value, "screenW": value})
        assert report.lat is None
        assert report.lon is None
        assert report.screen_w is None

    def test_text_fields_are_type_checked(self):
        report = GeoReport.model_validate({
            "platform": 42,
            "vendor": {"name": "x"},
            "language": "",
            "timezone": True,
        })
        assert report.platform == "42"
        assert report.vendor is None
        assert report.language is None
        assert report.timezone is None

    @pytest.mark.parametrize("value,expected", [
        (True, True), ("yes", True), (1, True),
        (False, False), (0, False), ("", False), (None, False),
    ])
    def test_flags_use_truthiness(self, value, expected):
        report = GeoReport.model_validate({"consented": value, "doNotTrack": value})
        assert report.consented is expected
        assert report.do_not_track is expected

    def test_languages_must_be_a_list(self):
        assert GeoReport.model_validate({"languages": "en-US,en"}).languages is None
        assert GeoReport.model_validate({"languages": []}).languages == ""

    @pytest.mark.parametrize("payload", [{}, {"timestamp": ""}, {"timestamp": None}, {"timestamp": {}}])
    def test_missing_timestamp_defaults_to_receipt_time(self, payload):
        timestamp = GeoReport.model_validate(payload).timestamp
        assert timestamp.endswith("Z")
        assert "T" in timestamp

    def test_unknown_fields_are_ignored(self):
        report = GeoReport.model_validate({"lat": 1.0, "extra": "x"})
        assert report.lat == 1.0
        assert not hasattr(report, "extra")


class TestParseReport:
    @pytest.mark.parametrize("body", [b"", b"not json", b"[1, 2]", b"42", b"\xff\xfe"])
    def test_non_object_body_is_empty_report(self, body):
        report = parse_report(body)
        assert report.lat is None
        assert report.consented is False

    def test_object_body(self):
        assert parse_report(b'{"lat": 1.5, "lon": 2.5}').lon == 2.5


class TestGeoEndpoint:
    @pytest.mark.asyncio
    async def test_valid_token_updates_record(self, client, store, settings):
        await store.add(make_click(CLICK_ID, "2024-01-01T00:00:00.000000Z"))
        client.cookies.set(settings.correlation_cookie_name, CLICK_ID)

        resp = await client.post(
            "/api/geo",
            json={"lat": 10.5, "lon": 20.25, "accuracy": 5, "consented": True},
        )

        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

        click = await store.get(CLICK_ID)
        assert click.precise_lat == 10.5
        assert click.precise_lon == 20.25
        assert click.precise_accuracy_m == 5
        assert click.consented is True
        assert click.precise_timestamp.endswith("Z")

    @pytest.mark.asyncio
    async def test_missing_token_is_client_error(self, client):
        spy = SpyStore()
        app.dependency_overrides[get_click_store] = lambda: spy

        resp = await client.post("/api/geo", json={"lat": 1.0, "lon": 2.0})

        assert resp.status_code == 400
        assert spy.enrich_calls == []

    @pytest.mark.asyncio
    async def test_empty_token_is_missing(self, client, settings):
        spy = SpyStore()
        app.dependency_overrides[get_click_store] = lambda: spy
        client.cookies.set(settings.correlation_cookie_name, "")

        resp = await client.post("/api/geo", json={"lat": 1.0})

        assert resp.status_code == 400
        assert spy.enrich_calls == []

    @pytest.mark.asyncio
    async def test_unknown_token_still_succeeds(self, client, store, settings):
        await store.add(make_click(CLICK_ID, "2024-01-01T00:00:00.000000Z"))
        client.cookies.set(settings.correlation_cookie_name, "f" * 32)

        resp = await client.post("/api/geo", json={"lat": 1.0, "lon": 2.0, "consented": True})

        assert resp.status_code == 200
        assert resp.json() == {"ok": True}
        assert (await store.get(CLICK_ID)).precise_lat is None

    @pytest.mark.asyncio
    async def test_malformed_body_is_accepted(self, client, store, settings):
        await store.add(make_click(CLICK_ID, "2024-01-01T00:00:00.000000Z"))
        client.cookies.set(settings.correlation_cookie_name, CLICK_ID)

        resp = await client.post(
            "/api/geo",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert resp.status_code == 200
        click = await store.get(CLICK_ID)
        assert click.consented is False
        assert click.precise_lat is None
        assert click.precise_timestamp is not None

    @pytest.mark.asyncio
    async def test_oversized_body_is_rejected(self, client, settings):
        spy = SpyStore()
        app.dependency_overrides[get_click_store] = lambda: spy
        client.cookies.set(settings.correlation_cookie_name, CLICK_ID)

        resp = await client.post(
            "/api/geo",
            content=b"x" * (settings.max_report_bytes + 1),
            headers={"Content-Type": "application/json"},
        )

        assert resp.status_code == 413
        assert spy.enrich_calls == []

    @pytest.mark.asyncio
    async def test_declared_oversized_length_is_rejected_before_reading(self, client, settings):
        spy = SpyStore()
        app.dependency_overrides[get_click_store] = lambda: spy
        client.cookies.set(settings.correlation_cookie_name, CLICK_ID)

        # The announced length alone decides; the actual body is tiny
        resp = await client.post(
            "/api/geo",
            content=b"{}",
            headers={
                "Content-Type": "application/json",
                "Content-Length": str(settings.max_report_bytes + 1),
            },
        )

        assert resp.status_code == 413
        assert spy.enrich_calls == []

    @pytest.mark.asyncio
    async def test_storage_failure_is_server_error(self, client, settings):
        app.dependency_overrides[get_click_store] = lambda: FailingStore()
        client.cookies.set(settings.correlation_cookie_name, CLICK_ID)

        resp = await client.post("/api/geo", json={"lat": 1.0, "lon": 2.0})

        assert resp.status_code == 500

    @pytest.mark.asyncio
    async def test_bait_click_then_report(self, client, store, settings):
        resp = await client.get("/track", params={"u": settings.bait_sentinel})
        click_id = resp.cookies[settings.correlation_cookie_name]

        resp = await client.post(
            "/api/geo",
            json={
                "lat": 48.8584,
                "lon": 2.2945,
                "accuracy": 30,
                "timestamp": 1700000000000,
                "consented": True,
                "languages": ["fr-FR", "en"],
                "doNotTrack": True,
            },
        )

        assert resp.status_code == 200
        click = await store.get(click_id)
        assert click.dest_url == settings.bait_sentinel
        assert (click.precise_lat, click.precise_lon) == (48.8584, 2.2945)
        assert click.device_languages == "fr-FR,en"
        assert click.do_not_track is True

    @pytest.mark.asyncio
    async def test_cookie_follows_overridden_settings(self, client, store):
        custom = Settings(correlation_cookie_name="trk", correlation_ttl_seconds=60)
        app.dependency_overrides[get_settings] = lambda: custom

        resp = await client.get("/track", params={"u": custom.bait_sentinel})

        assert "max-age=60" in resp.headers["set-cookie"].lower()
        click_id = resp.cookies["trk"]
        assert "cid" not in resp.cookies

        resp = await client.post("/api/geo", json={"lat": 1.0, "lon": 2.0, "consented": True})

        assert resp.status_code == 200
        assert (await store.get(click_id)).precise_lat == 1.0
