"""
ERP lookup service
Integrates with the Frappe / ERPNext generic document-resource API
(GET /api/resource/{DocType}, GET /api/resource/{DocType}/{name})
"""

import asyncio
import json
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

from config.settings import (
    ERP_URL,
    ERP_API_KEY,
    ERP_API_SECRET,
    ERP_CUSTOM_DOCTYPES,
    ERP_ORDER_ITEM_CODE,
    ERP_DEFAULT_TERRITORY,
    ERP_TIMEOUT,
    ERP_MAX_RETRIES
)
from services.entity_formatter import (
    ADDRESS_FETCH_FAILED,
    CUSTOM_FIELDS,
    format_address,
    format_custom_document
)
from utils.error_handler import ERPError
from utils.retry import retrying_api_call

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = ["name", "customer_name", "mobile_no", "customer_primary_address"]
ADDRESS_FIELDS = [
    "name", "address_title", "address_line1", "address_line2", "city",
    "state", "pincode", "country", "phone", "email_id"
]
CUSTOM_DOCUMENT_LIMIT = 10


def dynamic_link_filters(link_name: str, link_doctype: str = "Customer") -> List[List[str]]:
    """Filters selecting documents linked to a record through the Dynamic Link child table"""
    return [
        ["Dynamic Link", "link_name", "=", link_name],
        ["Dynamic Link", "link_doctype", "=", link_doctype]
    ]


def describe_erp_error(error: ERPError, erp_url: str = None) -> str:
    """
    Translate an ERP failure into a message for the customer

    Args:
        error: The ERPError raised by the client
        erp_url: Configured ERP base URL, mentioned for 404s

    Returns:
        User-facing text
    """
    status_code = error.status_code

    if status_code in (401, 403):
        return (
            "🔒 *Authentication failed*\n\n"
            "Authentication with our customer system failed, so I can't look up "
            "account details right now. Our team has been notified."
        )
    if status_code == 404:
        return (
            "⚠️ *Customer system unavailable*\n\n"
            f"The ERP server at {erp_url or 'the configured ERP URL'} could not find "
            "the requested resource. Please check the ERP URL configuration."
        )
    if status_code == 417:
        return (
            "⚠️ *Invalid search*\n\n"
            "The customer system rejected the request format of the search. "
            "Please send the mobile number digits only, e.g. 0501234567."
        )
    if status_code is None:
        return "⏳ Unable to reach our customer system right now. Please try again later."

    return (
        f"⚠️ Our customer system returned an unexpected error (status {status_code}). "
        "Please try again later."
    )


def _extract_server_message(details) -> Optional[str]:
    """Pull the human-readable message out of a Frappe error body"""
    if not isinstance(details, dict):
        return None
    if details.get("message"):
        return str(details["message"])

    raw_messages = details.get("_server_messages") or details.get("server_messages")
    if raw_messages:
        try:
            messages = json.loads(raw_messages)
            if isinstance(messages, list) and messages:
                first = messages[0]
                parsed = json.loads(first) if isinstance(first, str) else first
                if isinstance(parsed, dict):
                    return parsed.get("message")
                return str(parsed)
        except (ValueError, TypeError) as e:
            logger.warning(f"Could not parse ERP server messages: {e}")

    if details.get("exc_type"):
        return str(details["exc_type"])
    return None


class ERPClient:
    """Async client for the ERP document-resource API"""

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        api_secret: str = None,
        custom_doc_types: List[str] = None,
        order_item_code: str = None,
        territory: str = None,
        timeout: float = None,
        max_attempts: int = None,
        transport: httpx.AsyncBaseTransport = None
    ):
        self.base_url = (base_url if base_url is not None else ERP_URL or "").rstrip("/")
        api_key = api_key if api_key is not None else ERP_API_KEY
        api_secret = api_secret if api_secret is not None else ERP_API_SECRET
        self.custom_doc_types = custom_doc_types if custom_doc_types is not None else ERP_CUSTOM_DOCTYPES
        self.order_item_code = order_item_code or ERP_ORDER_ITEM_CODE
        self.territory = territory or ERP_DEFAULT_TERRITORY
        self.max_attempts = max_attempts or ERP_MAX_RETRIES
        self.headers = {
            "Authorization": f"token {api_key}:{api_secret}",
            "Content-Type": "application/json"
        }
        self.client = httpx.AsyncClient(timeout=timeout or ERP_TIMEOUT, transport=transport)

    # ------------------------------------------------------------------
    # Low level resource access
    # ------------------------------------------------------------------

    @staticmethod
    def _resource_path(doctype: str, name: str = None) -> str:
        path = f"/api/resource/{quote(doctype, safe='')}"
        if name is not None:
            path += f"/{quote(str(name), safe='')}"
        return path

    async def _request(self, method: str, path: str, params: Dict = None, payload: Dict = None) -> Dict:
        """
        Perform an ERP call and return the decoded JSON body

        Raises:
            ERPError: on HTTP error status (status_code set) or when the
                server cannot be reached (status_code None)
        """
        if not self.base_url:
            raise ERPError("ERP URL is not configured", status_code=None)

        url = f"{self.base_url}{path}"

        try:
            async for attempt in retrying_api_call(self.max_attempts):
                with attempt:
                    response = await self.client.request(
                        method, url, headers=self.headers, params=params, json=payload
                    )
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            try:
                details = e.response.json()
            except ValueError:
                details = {"response": e.response.text[:500]}
            if not isinstance(details, dict):
                details = {"response": details}
            status_code = e.response.status_code
            logger.error(f"❌ ERP {method} {path} failed with status {status_code}")
            raise ERPError(
                message=_extract_server_message(details) or f"ERP returned status {status_code}",
                status_code=status_code,
                details=details
            )
        except httpx.RequestError as e:
            logger.error(f"❌ ERP {method} {path} unreachable: {e}")
            raise ERPError(
                message=f"ERP unreachable: {e}",
                status_code=None,
                details={"error": str(e)}
            )
        except ValueError as e:
            logger.error(f"❌ ERP {method} {path} returned invalid JSON: {e}")
            raise ERPError(
                message="ERP returned an invalid response",
                status_code=response.status_code,
                details={"error": str(e)}
            )

    async def list_documents(
        self,
        doctype: str,
        filters: List[List],
        fields: List[str] = None,
        limit: int = None
    ) -> List[Dict]:
        """Query a resource list with JSON-encoded filters and fields"""
        params = {"filters": json.dumps(filters)}
        if fields:
            params["fields"] = json.dumps(fields)
        if limit:
            params["limit"] = limit

        data = await self._request("GET", self._resource_path(doctype), params=params)
        return data.get("data") or []

    async def get_document(self, doctype: str, name: str) -> Optional[Dict]:
        """Fetch a single document with all of its fields"""
        data = await self._request("GET", self._resource_path(doctype, name))
        return data.get("data")

    async def get_logged_user(self) -> Dict:
        """Connection test: which user do our API credentials belong to"""
        return await self._request("GET", "/api/method/frappe.auth.get_logged_user")

    # ------------------------------------------------------------------
    # Customer lookup
    # ------------------------------------------------------------------

    async def get_customer_by_mobile(self, mobile_number: str) -> Optional[Dict]:
        """
        Find a customer by exact mobile number

        The ERP does not enforce unique mobile numbers; the first match wins.
        """
        customers = await self.list_documents(
            "Customer",
            [["mobile_no", "=", mobile_number]],
            fields=CUSTOMER_FIELDS
        )
        return customers[0] if customers else None

    async def fetch_customer_address(self, customer_name: str, primary_address: str = None) -> Optional[Dict]:
        """Address record linked to the customer; the primary address is preferred"""
        addresses = await self.list_documents(
            "Address",
            dynamic_link_filters(customer_name),
            fields=ADDRESS_FIELDS
        )
        if not addresses:
            return None
        if primary_address:
            for address in addresses:
                if address.get("name") == primary_address:
                    return address
        return addresses[0]

    async def get_customer_address(self, customer_name: str, primary_address: str = None) -> str:
        """Formatted address block; never raises"""
        try:
            address = await self.fetch_customer_address(customer_name, primary_address)
        except ERPError as e:
            logger.error(f"Error fetching address for {customer_name}: {e.message}")
            return ADDRESS_FETCH_FAILED
        return format_address(address)

    async def get_document_details(self, doc_type: str, doc_name: str) -> Optional[str]:
        try:
            document = await self.get_document(doc_type, doc_name)
        except ERPError as e:
            logger.error(f"Error fetching {doc_type} {doc_name}: {e.message}")
            return None
        return format_custom_document(document, CUSTOM_FIELDS, doc_type)

    async def get_custom_documents(self, customer_name: str) -> Optional[str]:
        """
        Render every configured custom document linked to the customer

        Returns:
            Joined text blocks, or None when nothing is worth showing
        """
        blocks = []

        for doc_type in self.custom_doc_types:
            try:
                documents = await self.list_documents(
                    doc_type,
                    dynamic_link_filters(customer_name),
                    limit=CUSTOM_DOCUMENT_LIMIT
                )
            except ERPError as e:
                logger.warning(f"Error fetching {doc_type} documents for {customer_name}: {e.message}")
                blocks.append(f"*{doc_type}:* Details unavailable right now")
                continue

            details = await asyncio.gather(*[
                self.get_document_details(doc_type, document["name"])
                for document in documents
                if document.get("name")
            ])
            blocks.extend(block for block in details if block)

        return "\n\n".join(blocks) if blocks else None

    async def find_customer_by_mobile(self, mobile_number: str) -> str:
        """
        Look up a customer and render everything we know about them

        Args:
            mobile_number: Mobile number exactly as it should match the
                ERP's mobile_no field

        Returns:
            Reply text; ERP failures are turned into user-facing messages
        """
        logger.info(f"🔍 Searching for customer with mobile: {mobile_number}")

        try:
            customer = await self.get_customer_by_mobile(mobile_number)
        except ERPError as e:
            logger.error(f"❌ Customer lookup failed (status {e.status_code}): {e.message}")
            return describe_erp_error(e, self.base_url)

        if not customer:
            logger.info(f"No customer found for mobile: {mobile_number}")
            return (
                "*CUSTOMER NOT FOUND*\n\n"
                f"No customer found with mobile number: {mobile_number}\n\n"
                "Would you like to place a new order? I can help you get started!"
            )

        try:
            logger.info(f"✓ Found customer: {customer.get('customer_name')}")
            address_info, custom_info = await asyncio.gather(
                self.get_customer_address(customer["name"], customer.get("customer_primary_address")),
                self.get_custom_documents(customer["name"])
            )
        except Exception as e:
            logger.error(f"❌ Unexpected error building customer details: {e}", exc_info=True)
            return "Unable to fetch customer information. Please try again later."

        response = (
            "*CUSTOMER FOUND* ✅\n\n"
            f"*Name:* {customer.get('customer_name') or customer['name']}\n"
            f"*Mobile:* {customer.get('mobile_no') or mobile_number}\n\n"
            f"{address_info}"
        )
        if custom_info:
            response += f"\n\n{custom_info}"

        response += (
            "\n\n*⚡ QUICK ACTIONS:*\n"
            "• \"order [product]\" - Place a new order\n"
            "• \"Delivery schedule\" - Check delivery info\n\n"
            "What would you like to do?"
        )
        return response

    async def lookup_customer(self, mobile_number: str) -> Optional[Dict]:
        """
        Structured lookup used by the order flow

        Returns:
            {"customer": {...}, "address": {...} or None}, or None when no
            customer matches

        Raises:
            ERPError
        """
        customer = await self.get_customer_by_mobile(mobile_number)
        if not customer:
            return None
        address = await self.fetch_customer_address(customer["name"], customer.get("customer_primary_address"))
        return {"customer": customer, "address": address}

    # ------------------------------------------------------------------
    # Order placement
    # ------------------------------------------------------------------

    async def ensure_customer_exists(self, mobile_number: str, address: str = None) -> Dict:
        """Find the customer for this number, creating one if needed"""
        try:
            customer = await self.get_customer_by_mobile(mobile_number)
        except ERPError as e:
            logger.error(f"Error checking customer existence: {e.message}")
            return {
                "success": False,
                "message": "Unable to verify customer information. Please contact support."
            }

        if customer:
            return {
                "success": True,
                "customer_name": customer["name"],
                "message": "Customer found"
            }

        return await self.create_customer(mobile_number, address)

    async def create_customer(self, mobile_number: str, address: str = None) -> Dict:
        payload = {
            "doctype": "Customer",
            "customer_name": f"Customer {mobile_number}",
            "mobile_no": mobile_number,
            "customer_type": "Individual",
            "customer_group": "Individual",
            "territory": self.territory
        }

        try:
            data = await self._request("POST", self._resource_path("Customer"), payload=payload)
        except ERPError as e:
            logger.error(f"Error creating customer: {e.message}")
            return {
                "success": False,
                "message": "Unable to create customer profile. Please provide your details to our support team."
            }

        customer_name = data["data"]["name"]
        logger.info(f"✓ Created ERP customer {customer_name}")

        if address:
            await self.create_customer_address(customer_name, address)

        return {
            "success": True,
            "customer_name": customer_name,
            "message": "New customer created successfully"
        }

    async def create_customer_address(self, customer_name: str, address: str) -> bool:
        """Attach a delivery address; failures do not block the order"""
        payload = {
            "doctype": "Address",
            "address_title": "Delivery Address",
            "address_line1": address,
            "city": "UAE",
            "country": "United Arab Emirates",
            "links": [{
                "link_doctype": "Customer",
                "link_name": customer_name
            }]
        }

        try:
            await self._request("POST", self._resource_path("Address"), payload=payload)
            return True
        except ERPError as e:
            logger.warning(f"Error creating address for {customer_name}: {e.message}")
            return False

    async def create_sales_order(
        self,
        customer_name: str,
        product: Dict,
        quantity: int,
        address: str = None,
        customer_phone: str = None
    ) -> Dict:
        """
        Create a Sales Order for tomorrow's delivery

        Every catalog product is booked against the single configured item
        code; the bottle deposit is a separate line.
        """
        items = [{
            "item_code": self.order_item_code,
            "item_name": product["name"],
            "description": product["description"],
            "qty": quantity,
            "rate": product["price"],
            "amount": product["price"] * quantity
        }]
        if product.get("deposit", 0) > 0:
            items.append({
                "item_code": self.order_item_code,
                "item_name": "Bottle Deposit",
                "description": "Refundable bottle deposit",
                "qty": quantity,
                "rate": product["deposit"],
                "amount": product["deposit"] * quantity
            })

        payload = {
            "doctype": "Sales Order",
            "customer": customer_name,
            "order_type": "Sales",
            "delivery_date": (date.today() + timedelta(days=1)).isoformat(),
            "items": items,
            "custom_delivery_address": address,
            "custom_customer_phone": customer_phone,
            "custom_order_source": "WhatsApp Bot"
        }

        try:
            data = await self._request("POST", self._resource_path("Sales Order"), payload=payload)
        except ERPError as e:
            logger.error(f"ERP order creation failed: {e.message}")
            return {
                "success": False,
                "error": e.message,
                "error_type": e.details.get("exc_type", "general"),
                "status_code": e.status_code
            }

        logger.info(f"✓ Created Sales Order {data['data']['name']} for {customer_name}")
        return {
            "success": True,
            "order_name": data["data"]["name"],
            "data": data["data"]
        }

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()
