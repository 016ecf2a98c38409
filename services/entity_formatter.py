"""
Formatting of ERP documents into WhatsApp text blocks
Empty fields are left out entirely; no blank placeholders are rendered.
"""

from typing import Dict, Iterable, Optional

ADDRESS_NOT_AVAILABLE = "*ADDRESS:* Not available"
ADDRESS_FETCH_FAILED = "*ADDRESS:* Unable to fetch address details"

CUSTOM_FIELD_PREFIX = "custom_"

CUSTOM_FIELDS = (
    "custom_bottle_in_hand",
    "custom_coupon_count",
    "custom_cooler_in_hand",
    "custom_bottle_per_recharge",
    "custom_bottle_recharge_amount",
    "postal_code",
)

# Shown when a document has none of the allow-listed fields
FALLBACK_FIELDS = (
    ("address_line1", "Address"),
    ("city", "City"),
    ("pincode", "Pincode"),
)


def _has_value(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def field_label(field_name: str) -> str:
    """custom_bottle_in_hand -> Bottle In Hand"""
    if field_name.startswith(CUSTOM_FIELD_PREFIX):
        field_name = field_name[len(CUSTOM_FIELD_PREFIX):]
    return " ".join(token.capitalize() for token in field_name.split("_") if token)


def format_location_line(city: str = None, state: str = None, pincode: str = None) -> str:
    """Join city, state and pincode as "city, state - pincode"."""
    line = ""
    if _has_value(city):
        line += str(city)
    if _has_value(state):
        line += f", {state}" if line else str(state)
    if _has_value(pincode):
        line += f" - {pincode}" if line else str(pincode)
    return line


def format_address(address: Optional[Dict]) -> str:
    """
    Format an ERP Address record

    Args:
        address: Address fields as returned by the ERP, or None when the
            customer has no linked address

    Returns:
        Address block starting with the *ADDRESS:* header
    """
    if not address:
        return ADDRESS_NOT_AVAILABLE

    lines = ["*ADDRESS:*"]

    for field in ("address_title", "address_line1", "address_line2"):
        if _has_value(address.get(field)):
            lines.append(str(address[field]))

    location_line = format_location_line(
        address.get("city"),
        address.get("state"),
        address.get("pincode")
    )
    if location_line:
        lines.append(location_line)

    if _has_value(address.get("country")):
        lines.append(str(address["country"]))
    if _has_value(address.get("phone")):
        lines.append(f"*Phone:* {address['phone']}")
    if _has_value(address.get("email_id")):
        lines.append(f"*Email:* {address['email_id']}")

    return "\n".join(lines)


def format_custom_document(
    document: Optional[Dict],
    allowed_fields: Iterable[str] = CUSTOM_FIELDS,
    doc_type: str = "Document"
) -> Optional[str]:
    """
    Format a linked custom document

    Only allow-listed fields are rendered. When none of them carries a value
    the generic address fields are tried instead.

    Returns:
        Text block, or None when there is nothing worth showing
    """
    if not document:
        return None

    title = document.get("name") or document.get("title") or doc_type
    lines = []

    for field in allowed_fields:
        value = document.get(field)
        if _has_value(value):
            lines.append(f"{field_label(field)}: {value}")

    if not lines:
        for field, label in FALLBACK_FIELDS:
            if _has_value(document.get(field)):
                lines.append(f"{label}: {document[field]}")

    if not lines:
        return None

    return f"*{title}:*\n" + "\n".join(lines)
