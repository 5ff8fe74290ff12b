"""Tests for the click capture flow and the /track endpoint."""
import re

import pytest

from clicklog.core.deps import get_click_store
from clicklog.main import app
from clicklog.services.capture import CaptureStage, ClickContext, capture_click, present
from tests.conftest import FailingStore, FakeLocator


class TestClickContext:
    def test_first_forwarded_hop_is_client_ip(self):
        context = ClickContext(raw_destination=None, ip_chain=" 203.0.113.5 , 10.0.0.1", peer_ip="10.0.0.2")
        assert context.client_ip == "203.0.113.5"

    def test_peer_address_without_forwarded_header(self):
        context = ClickContext(raw_destination=None, peer_ip="198.51.100.9")
        assert context.client_ip == "198.51.100.9"

    def test_empty_first_hop_falls_back_to_peer(self):
        context = ClickContext(raw_destination=None, ip_chain=" , 10.0.0.1", peer_ip="198.51.100.9")
        assert context.client_ip == "198.51.100.9"

    def test_no_address_at_all(self):
        assert ClickContext(raw_destination=None).client_ip == ""


class TestCaptureClick:
    @pytest.mark.asyncio
    async def test_redirect_click_is_persisted(self, store, locator, settings):
        context = ClickContext(raw_destination="https://example.com/x", ip_chain="8.8.8.8")
        result = await capture_click(context, store, locator, settings)

        assert result.bait is False
        assert result.persisted is True
        assert result.stage is CaptureStage.PERSISTED
        assert result.dest_url == "https://example.com/x"
        assert locator.calls == ["8.8.8.8"]

        click = await store.get(result.click_id)
        assert click.dest_url == "https://example.com/x"
        assert click.ip == "8.8.8.8"
        assert click.approx_city == "Mountain View"
        assert click.created_at.endswith("Z")

    @pytest.mark.asyncio
    async def test_click_id_is_random_hex(self, store, locator, settings):
        first = await capture_click(ClickContext(raw_destination=None), store, locator, settings)
        second = await capture_click(ClickContext(raw_destination=None), store, locator, settings)
        assert re.fullmatch(r"[0-9a-f]{32}", first.click_id)
        assert first.click_id != second.click_id

    @pytest.mark.asyncio
    async def test_missing_location_leaves_approx_fields_empty(self, store, settings):
        result = await capture_click(
            ClickContext(raw_destination=None, peer_ip="8.8.4.4"),
            store,
            FakeLocator(None),
            settings,
        )
        click = await store.get(result.click_id)
        assert click.approx_country is None
        assert click.approx_lat is None
        assert click.approx_accuracy_km is None

    @pytest.mark.asyncio
    async def test_storage_failure_is_swallowed(self, locator, settings):
        store = FailingStore()
        result = await capture_click(
            ClickContext(raw_destination="https://example.com/x"), store, locator, settings
        )

        assert store.attempts == 1
        assert result.persisted is False
        assert result.stage is CaptureStage.GEOLOCATED

        response = present(result, settings)
        assert response.status_code == 302
        assert response.headers["location"] == "https://example.com/x"
        assert result.stage is CaptureStage.PRESENTED


class TestTrackEndpoint:
    @pytest.mark.asyncio
    async def test_redirects_to_destination_and_records_it(self, client, store):
        resp = await client.get("/track", params={"u": "https://example.com/x"})

        assert resp.status_code == 302
        assert resp.headers["location"] == "https://example.com/x"
        assert "set-cookie" not in resp.headers

        clicks = await store.recent(10)
        assert len(clicks) == 1
        assert clicks[0].dest_url == "https://example.com/x"

    @pytest.mark.asyncio
    async def test_unsafe_destination_goes_to_fallback(self, client, store, settings):
        resp = await client.get("/track", params={"u": "javascript:alert(document.cookie)"})

        assert resp.status_code == 302
        assert resp.headers["location"] == settings.redirect_default
        assert (await store.latest()).dest_url == settings.redirect_default

    @pytest.mark.asyncio
    async def test_missing_destination_goes_to_fallback(self, client, settings):
        resp = await client.get("/track")
        assert resp.status_code == 302
        assert resp.headers["location"] == settings.redirect_default

    @pytest.mark.asyncio
    async def test_first_destination_wins_when_repeated(self, client):
        resp = await client.get("/track?u=https://first.example/&u=https://second.example/")
        assert resp.headers["location"] == "https://first.example/"

    @pytest.mark.asyncio
    async def test_request_headers_are_recorded(self, client, store, locator):
        await client.get(
            "/track",
            params={"u": "https://example.com/"},
            headers={
                "X-Forwarded-For": "203.0.113.9, 10.0.0.1",
                "User-Agent": "Mozilla/5.0 test",
                "Accept-Language": "nb-NO,nb;q=0.9",
                "Referer": "https://chat.example/room",
            },
        )

        click = await store.latest()
        assert click.ip == "203.0.113.9"
        assert click.ip_chain == "203.0.113.9, 10.0.0.1"
        assert click.user_agent == "Mozilla/5.0 test"
        assert click.accept_language == "nb-NO,nb;q=0.9"
        assert click.referrer == "https://chat.example/room"
        assert locator.calls == ["203.0.113.9"]

    @pytest.mark.asyncio
    async def test_redirect_survives_storage_failure(self, client):
        app.dependency_overrides[get_click_store] = lambda: FailingStore()

        resp = await client.get("/track", params={"u": "https://example.com/x"})

        assert resp.status_code == 302
        assert resp.headers["location"] == "https://example.com/x"

    @pytest.mark.asyncio
    async def test_bait_mode_serves_page_and_sets_cookie(self, client, store, settings):
        resp = await client.get("/track", params={"u": settings.bait_sentinel})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert "navigator.geolocation" in resp.text

        click = await store.latest()
        assert click.dest_url == settings.bait_sentinel
        assert resp.cookies[settings.correlation_cookie_name] == click.id

        cookie_header = resp.headers["set-cookie"].lower()
        assert "httponly" in cookie_header
        assert "samesite=lax" in cookie_header
        assert f"max-age={settings.correlation_ttl_seconds}" in cookie_header

    @pytest.mark.asyncio
    async def test_bait_page_allows_geolocation_with_nonce_csp(self, client, settings):
        resp = await client.get("/track", params={"u": settings.bait_sentinel})

        assert resp.headers["permissions-policy"] == "geolocation=(self)"
        csp = resp.headers["content-security-policy"]
        nonce = re.search(r"'nonce-([^']+)'", csp).group(1)
        assert f'<script nonce="{nonce}">' in resp.text

    @pytest.mark.asyncio
    async def test_redirect_keeps_default_security_headers(self, client):
        resp = await client.get("/track", params={"u": "https://example.com/"})
        assert "geolocation=()" in resp.headers["permissions-policy"]
        assert resp.headers["x-content-type-options"] == "nosniff"
