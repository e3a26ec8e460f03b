"""
Tests for RepoLink testing utilities.

Verifies that MockProviderAPI, FakeClock and the payload helpers work correctly.
"""

import base64

import httpx
import pytest

from repolink.testing import (
    FakeClock,
    MockProviderAPI,
    create_file_payload,
    create_tree_payload,
)


class TestMockProviderAPI:
    """Tests for MockProviderAPI."""

    @pytest.mark.asyncio
    async def test_unrouted_requests_get_404(self) -> None:
        api = MockProviderAPI()

        async with api.client() as client:
            response = await client.get("https://api.github.com/anything")

        assert response.status_code == 404
        assert api.was_called("GET", "/anything")

    @pytest.mark.asyncio
    async def test_queued_responses_then_last_repeats(self) -> None:
        api = MockProviderAPI()
        api.on("GET", "/zen", text="one")
        api.on("GET", "/zen", text="two")

        async with api.client() as client:
            bodies = [(await client.get("https://api.github.com/zen")).text for _ in range(3)]

        assert bodies == ["one", "two", "two"]
        assert api.call_count("GET", "/zen") == 3

    @pytest.mark.asyncio
    async def test_records_request_details(self) -> None:
        api = MockProviderAPI().on("POST", "/login/device/code", json={"ok": True})

        async with api.client() as client:
            await client.post(
                "https://github.com/login/device/code?x=1",
                data={"client_id": "abc"},
                headers={"Authorization": "Bearer t"},
            )

        call = api.get_calls("POST")[0]
        assert call.path == "/login/device/code"
        assert call.params == {"x": "1"}
        assert call.form == {"client_id": "abc"}
        assert call.authorization == "Bearer t"

    @pytest.mark.asyncio
    async def test_configured_errors_raised(self) -> None:
        api = MockProviderAPI().on("GET", "/zen", error=httpx.ConnectError("down"))

        async with api.client() as client:
            with pytest.raises(httpx.ConnectError):
                await client.get("https://api.github.com/zen")

    def test_reset(self) -> None:
        api = MockProviderAPI().on("GET", "/zen", text="x")
        api.reset()

        assert api.get_calls() == []
        assert not api.was_called("GET", "/zen")


class TestFakeClock:
    """Tests for FakeClock."""

    @pytest.mark.asyncio
    async def test_sleep_advances_time(self) -> None:
        clock = FakeClock(start=100.0)

        await clock.sleep(2.5)
        clock.advance(1)

        assert clock.now() == 103.5
        assert clock.sleeps == [2.5]


class TestPayloadHelpers:
    """Tests for payload helper functions."""

    def test_file_payload_is_base64(self) -> None:
        payload = create_file_payload("a.md", "héllo")

        assert base64.b64decode(payload["content"]).decode("utf-8") == "héllo"
        assert payload["size"] == len("héllo".encode("utf-8"))

    def test_tree_payload_types(self) -> None:
        payload = create_tree_payload(("docs", "tree"), ("docs/a.md", "blob"))

        assert [entry["type"] for entry in payload["tree"]] == ["tree", "blob"]
        assert "size" not in payload["tree"][0]
