import httpx
import pytest

from apparel_catalog.exceptions import SupplierApiError, SupplierUnavailableError
from apparel_catalog.ssactivewear_client import SsActivewearClient


def make_client(handler):
    return SsActivewearClient(
        account_number="12345",
        api_key="secret",
        base_url="https://api.test/V2",
        timeout_seconds=2.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.unit
class TestSsActivewearClient:
    @pytest.mark.asyncio
    async def test_sends_basic_auth_and_drops_empty_params(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[{"sku": "1"}])

        async with make_client(handler) as client:
            data = await client.get("/products/", params={"partnumber": "B00060", "style": None})

        assert data == [{"sku": "1"}]
        assert seen["url"] == "https://api.test/V2/products/?partnumber=B00060"
        assert seen["auth"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_404_returns_none(self):
        async with make_client(lambda request: httpx.Response(404)) as client:
            assert await client.get("/styles/missing") is None
            assert await client.get_products("missing") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_transient_statuses(self, status):
        async with make_client(lambda request: httpx.Response(status, text="busy")) as client:
            with pytest.raises(SupplierUnavailableError) as exc_info:
                await client.get("/styles/")
        assert exc_info.value.status_code == status
        assert exc_info.value.is_transient

    @pytest.mark.asyncio
    async def test_auth_failure_is_not_transient(self):
        async with make_client(lambda request: httpx.Response(401, text="denied")) as client:
            with pytest.raises(SupplierApiError) as exc_info:
                await client.get("/styles/")
        assert not isinstance(exc_info.value, SupplierUnavailableError)
        assert exc_info.value.recoverable is False

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        async with make_client(handler) as client:
            with pytest.raises(SupplierUnavailableError) as exc_info:
                await client.get("/styles/")
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        async with make_client(lambda request: httpx.Response(200, text="<html>oops</html>")) as client:
            with pytest.raises(SupplierApiError, match="non-JSON"):
                await client.get("/styles/")

    @pytest.mark.asyncio
    async def test_rate_limit_headers_schedule_pause(self):
        headers = {"X-Rate-Limit-Remaining": "0", "X-Rate-Limit-Reset": "3"}
        async with make_client(lambda request: httpx.Response(200, json=[], headers=headers)) as client:
            await client.get("/styles/")
            assert client._next_allowed_at > 0

    @pytest.mark.asyncio
    async def test_fetch_rest_bundle_falls_back_to_part_number(self):
        def handler(request):
            if request.url.path == "/V2/styles/5000":
                return httpx.Response(200, json=[{"styleID": 39, "partNumber": "B00060", "title": "Tee"}])
            if request.url.path == "/V2/products/":
                if request.url.params["partnumber"] == "B00060":
                    return httpx.Response(200, json=[{"sku": "B00060WHS", "colorName": "White"}])
                return httpx.Response(200, json=[])
            return httpx.Response(404)

        async with make_client(handler) as client:
            bundle = await client.fetch_rest_bundle("5000")

        assert bundle.style["title"] == "Tee"
        assert [p["sku"] for p in bundle.products] == ["B00060WHS"]

    @pytest.mark.asyncio
    async def test_fetch_rest_bundle_without_style(self):
        def handler(request):
            if request.url.path.startswith("/V2/styles/"):
                return httpx.Response(404)
            return httpx.Response(200, json=[{"sku": "A"}])

        async with make_client(handler) as client:
            bundle = await client.fetch_rest_bundle("00060")

        assert bundle.style is None
        assert bundle.products == [{"sku": "A"}]
