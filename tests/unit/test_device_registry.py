import httpx
import pytest

from notify_service.push.device_registry import DeviceRegistryClient


def _client(handler) -> DeviceRegistryClient:
    return DeviceRegistryClient(base_url="http://iam-service:8080", timeout=1.0, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_tokens_are_parsed():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/internal/users/42/devices/tokens"
        return httpx.Response(200, json={
            "success": True,
            "data": [
                {"platform": "IOS", "token": "ios-token"},
                {"platform": "ANDROID", "token": "android-token"},
                {"platform": "WEB"},
            ],
        })

    tokens = await _client(handler).get_device_tokens("42")
    assert [(t.platform, t.token) for t in tokens] == [("IOS", "ios-token"), ("ANDROID", "android-token")]


@pytest.mark.asyncio
async def test_http_error_status_yields_empty_list():
    tokens = await _client(lambda request: httpx.Response(503)).get_device_tokens("42")
    assert tokens == []


@pytest.mark.asyncio
async def test_transport_error_yields_empty_list():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert await _client(handler).get_device_tokens("42") == []


@pytest.mark.asyncio
async def test_unsuccessful_envelope_yields_empty_list():
    tokens = await _client(lambda request: httpx.Response(200, json={"success": False})).get_device_tokens("42")
    assert tokens == []


@pytest.mark.asyncio
async def test_unconfigured_registry_has_no_devices():
    assert await DeviceRegistryClient(base_url="").get_device_tokens("42") == []
