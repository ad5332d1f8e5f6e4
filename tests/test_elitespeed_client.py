"""
EliteSpeed API 客户端与网关测试（httpx.MockTransport 模拟承运商）
"""
import json
from decimal import Decimal

import httpx
import pytest

from pod_core.models import Order, OrderItem
from pod_core.utils.errors import ServiceUnavailableError, ShippingFailureError
from plugins.pod.carriers.elitespeed.client import EliteSpeedClient, truncate_for_log
from plugins.pod.carriers.elitespeed.gateway import EliteSpeedGateway, extract_created_code

BASE_URL = "https://carrier.test/api"


def make_client(handler) -> EliteSpeedClient:
    return EliteSpeedClient(
        api_token="secret-token",
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
    )


def make_order() -> Order:
    return Order(
        id=7,
        order_number="POD-202610-00007",
        recipient_name="Omar Tazi",
        recipient_phone="0661000000",
        address_street="3 Rue de Fès",
        address_city="Tanger",
        quantity=1,
        total_amount=Decimal("180.00"),
        items=[OrderItem(product_name="T-Shirt", color="White", size="S", quantity=1)],
    )


def test_truncate_for_log():
    assert truncate_for_log(None) is None
    assert truncate_for_log({"a": 1}) == '{"a": 1}'
    assert truncate_for_log("x" * 20, max_len=5) == '"xxxx... [truncated, total 22 chars]'


@pytest.mark.parametrize(
    "response, expected",
    [
        ({"code_shippment": "ES-1"}, "ES-1"),
        ({"data": {"code_shippment": " ES-2 "}}, "ES-2"),
        ({"success": True}, None),
        ("ES-3", None),
    ],
)
def test_extract_created_code(response, expected):
    assert extract_created_code(response) == expected


async def test_create_parcel_sends_defaults_and_token():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["token"] = request.headers.get("api-Token")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "code_shippment": "ES-9001"})

    async with make_client(handler) as client:
        response = await client.create_parcel({"fullname": "Omar", "change": 1})

    assert response["code_shippment"] == "ES-9001"
    assert captured["method"] == "POST"
    assert captured["path"] == "/api/client/post/colis/add-colis"
    assert captured["token"] == "secret-token"
    assert captured["body"] == {"from_stock": 0, "change": 1, "openpackage": 0, "fullname": "Omar"}


async def test_create_parcel_rejected_by_carrier():
    def handler(request):
        return httpx.Response(422, json={"message": "Ville invalide"})

    async with make_client(handler) as client:
        with pytest.raises(ShippingFailureError) as exc_info:
            await client.create_parcel({"fullname": "Omar"})

    assert exc_info.value.status == 502
    assert exc_info.value.carrier_payload == {"message": "Ville invalide"}


async def test_create_parcel_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler) as client:
        with pytest.raises(ShippingFailureError) as exc_info:
            await client.create_parcel({"fullname": "Omar"})

    assert "ConnectError" in exc_info.value.detail


async def test_create_parcel_non_json_body():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    async with make_client(handler) as client:
        with pytest.raises(ShippingFailureError):
            await client.create_parcel({"fullname": "Omar"})


async def test_track_parcel():
    def handler(request):
        if request.url.path.endswith("/ES-1"):
            return httpx.Response(200, json={"statut": "Livré"})
        return httpx.Response(404, json={"message": "not found"})

    async with make_client(handler) as client:
        assert await client.track_parcel("ES-1") == {"statut": "Livré"}
        assert await client.track_parcel("ES-404") is None


async def test_list_pickup_parcels():
    def handler(request):
        assert request.url.path == "/api/client/colis/list-colis-ramassage/"
        return httpx.Response(200, json=[{"code": "ES-1"}])

    async with make_client(handler) as client:
        assert await client.list_pickup_parcels() == [{"code": "ES-1"}]


# ============ 网关 ============

async def test_gateway_create_parcel():
    captured = {}

    def handler(request):
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"code_shippment": "ES-5005"}})

    gateway = EliteSpeedGateway(client_factory=lambda: make_client(handler))
    parcel = await gateway.create_parcel(make_order(), note="Fragile")

    assert parcel.tracking_code == "ES-5005"
    assert captured["body"]["code"] == "POD-202610-00007"
    assert captured["body"]["price"] == "180.00"
    assert captured["body"]["note"] == "Fragile"


async def test_gateway_create_parcel_without_code():
    def handler(request):
        return httpx.Response(200, json={"success": True})

    gateway = EliteSpeedGateway(client_factory=lambda: make_client(handler))

    with pytest.raises(ShippingFailureError):
        await gateway.create_parcel(make_order())


async def test_gateway_track_parcel():
    def handler(request):
        return httpx.Response(200, json={"data": [{"status": "Ramassé"}]})

    gateway = EliteSpeedGateway(client_factory=lambda: make_client(handler))
    tracking = await gateway.track_parcel("ES-1")

    assert tracking.raw_status == "Ramassé"
    assert gateway.classify_status(tracking.raw_status, "PRINTED") == "DELIVERING"


async def test_gateway_track_parcel_failure():
    def handler(request):
        return httpx.Response(500, text="error")

    gateway = EliteSpeedGateway(client_factory=lambda: make_client(handler))

    with pytest.raises(ServiceUnavailableError) as exc_info:
        await gateway.track_parcel("ES-1")

    assert exc_info.value.code == "CARRIER_TRACKING_FAILED"
