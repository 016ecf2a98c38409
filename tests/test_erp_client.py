"""Tests for the ERP lookup client against a mocked resource API."""

import json
from datetime import date, timedelta

import httpx
import pytest

from conftest import ERP_BASE_URL, json_response
from services.erp_client import describe_erp_error, dynamic_link_filters
from utils.error_handler import ERPError

CUSTOMER = {
    "name": "CUST-0001",
    "customer_name": "Ahmed Ali",
    "mobile_no": "0502594880",
    "customer_primary_address": "ADDR-2",
}


def customer_handler(addresses=None, details=None, address_status=200):
    """Routes Customer, Address list and Address detail requests."""
    addresses = addresses if addresses is not None else []
    details = details or {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/resource/Customer":
            return json_response(200, {"data": [CUSTOMER]})
        if path == "/api/resource/Address":
            if address_status != 200:
                return json_response(address_status, {"exc_type": "InternalServerError"})
            return json_response(200, {"data": addresses})
        if path.startswith("/api/resource/Address/"):
            name = path.rsplit("/", 1)[-1]
            if name in details:
                return json_response(200, {"data": details[name]})
            return json_response(404, {"exc_type": "DoesNotExistError"})
        return json_response(404, {})

    return handler


class TestRequestEncoding:
    @pytest.mark.asyncio
    async def test_customer_query_parameters(self, erp_factory):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers["Authorization"]
            return json_response(200, {"data": []})

        client = erp_factory(handler)
        await client.find_customer_by_mobile("0502594880")

        assert seen["auth"] == "token key:secret"
        assert json.loads(seen["params"]["filters"]) == [["mobile_no", "=", "0502594880"]]
        assert json.loads(seen["params"]["fields"]) == [
            "name", "customer_name", "mobile_no", "customer_primary_address"
        ]

    def test_dynamic_link_filters(self):
        assert dynamic_link_filters("CUST-0001") == [
            ["Dynamic Link", "link_name", "=", "CUST-0001"],
            ["Dynamic Link", "link_doctype", "=", "Customer"],
        ]


class TestFindCustomerByMobile:
    @pytest.mark.asyncio
    async def test_not_found(self, erp_factory):
        client = erp_factory(lambda request: json_response(200, {"data": []}))

        reply = await client.find_customer_by_mobile("0509999999")

        assert "CUSTOMER NOT FOUND" in reply
        assert "0509999999" in reply

    @pytest.mark.asyncio
    async def test_found_with_address_and_custom_documents(self, erp_factory):
        addresses = [
            {"name": "ADDR-1", "address_line1": "Old Flat", "city": "Sharjah"},
            {"name": "ADDR-2", "address_line1": "Villa 12", "city": "Dubai", "state": "Dubai", "pincode": "12345"},
        ]
        details = {
            "ADDR-1": {"name": "ADDR-1", "custom_bottle_in_hand": 3},
            "ADDR-2": {"name": "ADDR-2", "custom_coupon_count": ""},
        }
        client = erp_factory(customer_handler(addresses, details))

        reply = await client.find_customer_by_mobile("0502594880")

        assert reply.startswith("*CUSTOMER FOUND* ✅")
        assert "*Name:* Ahmed Ali" in reply
        assert "*Mobile:* 0502594880" in reply
        # primary address wins over the first record
        assert "*ADDRESS:*\nVilla 12\nDubai, Dubai - 12345" in reply
        assert "*ADDR-1:*\nBottle In Hand: 3" in reply
        # nothing renderable for ADDR-2
        assert "*ADDR-2:*" not in reply
        assert "QUICK ACTIONS" in reply

    @pytest.mark.asyncio
    async def test_customer_without_address(self, erp_factory):
        client = erp_factory(customer_handler([]))

        reply = await client.find_customer_by_mobile("0502594880")

        assert "*ADDRESS:* Not available" in reply

    @pytest.mark.asyncio
    async def test_address_failure_keeps_customer_details(self, erp_factory):
        client = erp_factory(customer_handler(address_status=500))

        reply = await client.find_customer_by_mobile("0502594880")

        assert "*Name:* Ahmed Ali" in reply
        assert "*ADDRESS:* Unable to fetch address details" in reply
        assert "*Address:* Details unavailable right now" in reply

    @pytest.mark.asyncio
    async def test_failed_detail_fetch_is_skipped(self, erp_factory):
        addresses = [{"name": "ADDR-1", "address_line1": "Villa 1"}, {"name": "ADDR-9"}]
        details = {"ADDR-1": {"name": "ADDR-1", "custom_cooler_in_hand": 1}}
        client = erp_factory(customer_handler(addresses, details))

        reply = await client.find_customer_by_mobile("0502594880")

        assert "Cooler In Hand: 1" in reply
        assert "ADDR-9" not in reply

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code, expected", [
        (401, "Authentication failed"),
        (404, ERP_BASE_URL),
        (417, "request format"),
        (500, "status 500"),
    ])
    async def test_error_statuses(self, erp_factory, status_code, expected):
        client = erp_factory(lambda request: json_response(status_code, {"exc_type": "Error"}))

        reply = await client.find_customer_by_mobile("0502594880")

        assert expected in reply

    @pytest.mark.asyncio
    async def test_unreachable(self, erp_factory):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = erp_factory(handler)

        reply = await client.find_customer_by_mobile("0502594880")

        assert "try again later" in reply

    @pytest.mark.asyncio
    async def test_missing_base_url(self):
        from services.erp_client import ERPClient

        client = ERPClient(base_url="", api_key="k", api_secret="s", max_attempts=1)

        reply = await client.find_customer_by_mobile("0502594880")

        assert "try again later" in reply


class TestDescribeErpError:
    def test_forbidden_is_an_auth_failure(self):
        assert "Authentication failed" in describe_erp_error(ERPError("denied", status_code=403))

    def test_unreachable(self):
        assert "try again later" in describe_erp_error(ERPError("down", status_code=None))


class TestLookupCustomer:
    @pytest.mark.asyncio
    async def test_structured_result(self, erp_factory):
        addresses = [{"name": "ADDR-2", "address_line1": "Villa 12"}]
        client = erp_factory(customer_handler(addresses))

        result = await client.lookup_customer("0502594880")

        assert result["customer"]["name"] == "CUST-0001"
        assert result["address"]["address_line1"] == "Villa 12"

    @pytest.mark.asyncio
    async def test_raises_on_auth_failure(self, erp_factory):
        client = erp_factory(lambda request: json_response(401, {"message": "Invalid key"}))

        with pytest.raises(ERPError) as exc_info:
            await client.lookup_customer("0502594880")

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid key"

    @pytest.mark.asyncio
    async def test_logged_user(self, erp_factory):
        def handler(request):
            assert request.url.path == "/api/method/frappe.auth.get_logged_user"
            return json_response(200, {"message": "api@example.com"})

        client = erp_factory(handler)

        assert (await client.get_logged_user())["message"] == "api@example.com"


class TestOrderPlacement:
    @pytest.mark.asyncio
    async def test_creates_customer_and_address_when_missing(self, erp_factory):
        posted = []

        def handler(request):
            if request.method == "GET":
                return json_response(200, {"data": []})
            payload = json.loads(request.content)
            posted.append(payload)
            if payload["doctype"] == "Customer":
                return json_response(200, {"data": {"name": "CUST-0042"}})
            return json_response(200, {"data": {"name": "ADDR-0042"}})

        client = erp_factory(handler)

        result = await client.ensure_customer_exists("0501112222", "Villa 7, Marina")

        assert result["success"] is True
        assert result["customer_name"] == "CUST-0042"
        customer, address = posted
        assert customer["mobile_no"] == "0501112222"
        assert customer["territory"] == "DXB 02"
        assert address["address_line1"] == "Villa 7, Marina"
        assert address["links"] == [{"link_doctype": "Customer", "link_name": "CUST-0042"}]

    @pytest.mark.asyncio
    async def test_sales_order_payload(self, erp_factory):
        captured = {}

        def handler(request):
            captured["payload"] = json.loads(request.content)
            return json_response(200, {"data": {"name": "SO-0001"}})

        client = erp_factory(handler)
        product = {"name": "Single Bottle", "price": 7, "deposit": 15, "description": "5-gallon water bottle"}

        result = await client.create_sales_order("CUST-0001", product, 2, address="Villa 12", customer_phone="0502594880")

        assert result == {"success": True, "order_name": "SO-0001", "data": {"name": "SO-0001"}}
        payload = captured["payload"]
        assert payload["customer"] == "CUST-0001"
        assert payload["delivery_date"] == (date.today() + timedelta(days=1)).isoformat()
        bottle, deposit = payload["items"]
        assert bottle["item_code"] == "5 Gallon Filled"
        assert bottle["amount"] == 14
        assert deposit["item_name"] == "Bottle Deposit"
        assert deposit["amount"] == 30

    @pytest.mark.asyncio
    async def test_sales_order_failure_reports_server_message(self, erp_factory):
        server_messages = json.dumps([json.dumps({"message": "Item 5 Gallon Filled not found"})])

        def handler(request):
            return json_response(417, {"exc_type": "ValidationError", "_server_messages": server_messages})

        client = erp_factory(handler)
        product = {"name": "Hand Pump", "price": 15, "deposit": 0, "description": "Manual hand pump"}

        result = await client.create_sales_order("CUST-0001", product, 1)

        assert result["success"] is False
        assert result["error"] == "Item 5 Gallon Filled not found"
        assert result["error_type"] == "ValidationError"
        assert result["status_code"] == 417
