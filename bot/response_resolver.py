"""
Response resolver
Decides the reply for one inbound message: conversation-state commands
first, then the intent classifier, then regex and keyword fallbacks.
"""

import logging
import re
import time
from dataclasses import asdict
from datetime import datetime
from typing import Callable, Optional, Tuple

from bot.inbound import InboundMessage
from config.knowledge_base import (
    PRODUCTS,
    PRODUCT_ALIASES,
    KNOWLEDGE_BASE,
    GREETING_TEXT,
    MENU_TEXT,
    DELIVERY_TEXT,
    PAYMENT_TEXT,
    HELP_TEXT,
    GOODBYE_TEXT,
    LOCATION_DELIVERY_NOTES
)
from config.settings import NLP_ENABLED, NLP_CONFIDENCE_THRESHOLD, ENABLE_NLP_ANALYTICS
from database.session_store import Session, SessionState, OrderInProgress
from services.erp_client import ERPClient
from services.intent_classifier import Intent, IntentClassifier, IntentResult
from services.nlp_analytics import NLPAnalytics
from utils.error_handler import ERPError

logger = logging.getLogger(__name__)

MOBILE_PATTERN = re.compile(r"(\+?\d{1,4})?\d{8,15}")
ORDER_QUANTITY_PATTERN = re.compile(r"^(\d{1,4})\s+(.+)$")
ORDER_PREFIX = "order "

APOLOGY_TEXT = (
    "I apologize, but I encountered a technical issue. "
    "Please try again or contact our support team."
)
ORDER_CANCELLED_TEXT = "Order cancelled. How else can I help you today?"

ORDER_PROMPT_TEXT = """I'd love to help you place an order!

*QUICK ORDER OPTIONS:*
• "I need water bottles" - For individual bottles
• "Show me dispensers" - For water equipment
• "I want the best deal" - For coupon books
• "Office water solution" - For bulk orders

What would work best for you?"""

COMPLAINT_FOLLOWUP_TEXT = """Thank you for providing those details.

*COMPLAINT SUMMARY:*
• Priority: {severity}
• Details: ✅ Received and logged
• Reference: {reference}

*NEXT STEPS:*
1. 👨‍💼 Management team notified
2. 📞 We'll call you within 2 hours
3. 🔧 Resolution team assigned
4. ✅ Follow-up confirmation sent

We'll review and provide appropriate compensation. Thank you for your patience! 🙏"""


def contains_word(text: str, words) -> bool:
    """True when any of the words or phrases occurs as a whole word"""
    return any(re.search(rf"\b{re.escape(word)}\b", text) for word in words)


def time_of_day_greeting(now: datetime) -> str:
    if now.hour < 12:
        return "Good morning"
    if now.hour < 18:
        return "Good afternoon"
    return "Good evening"


def product_line(product: dict) -> str:
    line = f"• {product['name']} - AED {product['price']}"
    if product["deposit"] > 0:
        line += f" (+{product['deposit']} deposit)"
    return line


def product_listing() -> str:
    return "\n".join(product_line(product) for product in PRODUCTS.values())


def map_product_to_key(entity: str) -> Optional[str]:
    """Classifier product entity -> catalog key"""
    lowered = entity.lower()
    for alias, key in PRODUCT_ALIASES.items():
        if alias in lowered:
            return key
    return None


def find_product(order_text: str) -> Optional[str]:
    """
    Catalog key named in an order command

    Exact key or product name matches win over the generic category words
    bottle, dispenser and coupon.
    """
    for key, product in PRODUCTS.items():
        if key.replace("_", " ") in order_text or product["name"].lower() in order_text:
            return key

    for category in ("bottle", "dispenser", "coupon"):
        if category in order_text:
            for key in PRODUCTS:
                if category in key:
                    return key
    return None


def parse_order_quantity(order_text: str) -> Tuple[int, str]:
    """'2 single bottle' -> (2, 'single bottle')"""
    match = ORDER_QUANTITY_PATTERN.match(order_text)
    if match and int(match.group(1)) > 0:
        return int(match.group(1)), match.group(2).strip()
    return 1, order_text


def order_total(order: OrderInProgress) -> int:
    return (order.product["price"] + order.product["deposit"]) * order.quantity


def order_confirmation_text(order: OrderInProgress) -> str:
    product = order.product
    lines = [
        "*ORDER CONFIRMATION*",
        "",
        f"*Product:* {product['name']}",
        f"*Description:* {product['description']}",
        f"*Quantity:* {order.quantity}",
        f"*Price:* AED {product['price']}",
    ]
    if product["deposit"] > 0:
        lines.append(f"*Deposit:* AED {product['deposit']}")
    lines += [
        f"*Total:* AED {order_total(order)}",
        "",
        "*Delivery Address:*",
        order.address or "Using address on file",
        "",
        "*Payment:* Cash/Card on delivery",
        "",
        "*Confirm your order?*",
        'Reply "YES" to confirm or "NO" to cancel.'
    ]
    return "\n".join(lines)


def order_error_text(error: Optional[str]) -> str:
    """User-facing text for a failed Sales Order"""
    error = error or ""
    if "Customer" in error and "not found" in error:
        return (
            "*CUSTOMER ACCOUNT ISSUE*\n\n"
            "We couldn't find your customer account in our system.\n\n"
            "Please try placing your order again, and your account will be created automatically."
        )
    if "Item" in error and "not found" in error:
        return (
            "*PRODUCT UNAVAILABLE*\n\n"
            "The requested product is temporarily unavailable in our system.\n\n"
            "Please contact our support team or try ordering a different product."
        )
    if "permission" in error.lower():
        return (
            "*SYSTEM MAINTENANCE*\n\n"
            "Our ordering system is currently undergoing maintenance.\n\n"
            "Please try again in a few minutes or contact our team directly for immediate assistance."
        )
    return (
        "*ORDER PROCESSING ISSUE*\n\n"
        "We encountered a technical issue while processing your order.\n\n"
        "*What you can do:*\n"
        "• Try placing the order again in a few minutes\n"
        "• Contact our support team directly\n"
        "• Send us your details manually\n\n"
        "Our team has been notified and will resolve this quickly."
    )


def default_reply(text: str) -> str:
    return (
        f'I understand you\'re asking about: "{text}"\n\n'
        "I can help you with:\n"
        '- Product orders - Type "order [product name]"\n'
        '- Product information - Type "menu"\n'
        "- Delivery information - Ask about delivery\n"
        "- Payment options - Ask about payment\n\n"
        "*Or send a mobile number to look up customer details*\n\n"
        "What specific information do you need?"
    )


class ResponseResolver:
    """Maps an inbound message plus the sender's session to a reply text"""

    def __init__(
        self,
        erp_client: ERPClient,
        classifier: Optional[IntentClassifier] = None,
        analytics: Optional[NLPAnalytics] = None,
        nlp_enabled: bool = NLP_ENABLED,
        confidence_threshold: float = NLP_CONFIDENCE_THRESHOLD,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.erp = erp_client
        self.classifier = classifier
        self.analytics = analytics or NLPAnalytics(enabled=ENABLE_NLP_ANALYTICS)
        self.nlp_enabled = nlp_enabled
        self.confidence_threshold = confidence_threshold
        self.clock = clock

        self.intent_handlers = {
            Intent.GREETING: self._on_greeting,
            Intent.ORDER: self._on_order,
            Intent.MENU: self._on_menu,
            Intent.DELIVERY: self._on_delivery,
            Intent.PAYMENT: self._on_payment,
            Intent.HELP: self._on_help,
            Intent.COMPLAINT: self._on_complaint,
            Intent.CUSTOMER_LOOKUP: self._on_customer_lookup,
            Intent.UNKNOWN: self._on_unknown,
        }
        missing = set(Intent) - set(self.intent_handlers)
        if missing:
            raise ValueError(f"No handler for intents: {sorted(i.value for i in missing)}")

    async def resolve(self, message: InboundMessage, session: Session) -> str:
        """
        Produce the reply for one message

        Never raises; unexpected failures become an apology.
        """
        text = message.text.strip()
        session.record("user", text)

        try:
            reply = await self._resolve(message, session)
        except Exception as e:
            logger.error(f"❌ Error resolving reply for {message.sender_id}: {e}", exc_info=True)
            reply = APOLOGY_TEXT

        session.record("bot", reply)
        return reply

    async def _resolve(self, message: InboundMessage, session: Session) -> str:
        text = message.text.strip()
        sender_id = message.sender_id
        lowered = text.lower()

        # 1. Commands that depend on conversation state
        if lowered.startswith(ORDER_PREFIX):
            return await self.handle_order_command(text, sender_id, session)

        if session.state == SessionState.CONFIRMING_ORDER:
            if contains_word(lowered, ("yes", "confirm")):
                return await self.process_order(session, sender_id)
            if contains_word(lowered, ("no", "cancel")):
                session.reset()
                return ORDER_CANCELLED_TEXT

        # 2. Free text answering an open question
        if session.state == SessionState.COLLECTING_ADDRESS:
            if session.order_in_progress is not None:
                session.order_in_progress.address = message.text
                session.state = SessionState.CONFIRMING_ORDER
                return order_confirmation_text(session.order_in_progress)
            session.reset()

        if session.state == SessionState.HANDLING_COMPLAINT:
            return self.handle_complaint_followup(text, session)

        # 3. Keywords that always win
        if contains_word(lowered, ("help",)):
            return self.help_text(session)
        if contains_word(lowered, ("bye", "goodbye")):
            return GOODBYE_TEXT

        # 4. Intent classifier
        if self.nlp_enabled and self.classifier is not None and self.classifier.is_trained:
            reply = await self._resolve_with_classifier(text, sender_id, session)
            if reply is not None:
                return reply
            self.analytics.record_fallback()

        # 5. Anything that looks like a mobile number
        match = MOBILE_PATTERN.search(text)
        if match:
            mobile_number = match.group(0)
            logger.info(f"📱 Processing mobile number: {mobile_number}")
            return await self.erp.find_customer_by_mobile(mobile_number)

        # 6. Knowledge base keywords
        for entry in KNOWLEDGE_BASE:
            if contains_word(lowered, entry["keywords"]):
                logger.info(f"📚 Keyword match: {entry['category']}")
                return entry["response"]

        # 7. Nothing matched
        return default_reply(text)

    async def _resolve_with_classifier(self, text: str, sender_id: str, session: Session) -> Optional[str]:
        started = time.perf_counter()
        try:
            result = await self.classifier.classify(text)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(f"Intent classification failed: {e}", exc_info=True)
            self.analytics.track(None, 0.0, elapsed_ms, error=True)
            return None

        elapsed_ms = (time.perf_counter() - started) * 1000
        self.analytics.track(result.intent.value, result.confidence, elapsed_ms)
        logger.info(f"🧠 Intent: {result.intent.value} ({result.confidence:.2f})")

        session.nlp_context = {
            "last_intent": result.intent.value,
            "last_entities": asdict(result.entities),
            "last_sentiment": result.sentiment.label,
            "timestamp": self.clock().isoformat()
        }

        if result.confidence <= self.confidence_threshold:
            return None

        handler = self.intent_handlers[result.intent]
        return await handler(result, sender_id, session)

    # ------------------------------------------------------------------
    # Intent handlers; returning None falls through to the fallbacks
    # ------------------------------------------------------------------

    async def _on_greeting(self, result: IntentResult, sender_id: str, session: Session) -> Optional[str]:
        greeting = time_of_day_greeting(self.clock())
        return GREETING_TEXT.replace("Hello!", f"{greeting}!", 1)

    async def _on_order(self, result: IntentResult, sender_id: str, session: Session) -> Optional[str]:
        entities = result.entities
        if not entities.products:
            return ORDER_PROMPT_TEXT

        requested = entities.products[0]
        product_key = map_product_to_key(requested)
        if not product_key:
            return (
                f'I understand you\'re looking for "{requested}".\n\n'
                f"Here are our available products:\n{product_listing()}\n\n"
                "*Which product interests you most?*"
            )

        quantity = entities.quantities[0].number if entities.quantities else 1
        product_words = product_key.replace("_", " ")
        command = f"{ORDER_PREFIX}{quantity} {product_words}" if quantity > 1 else f"{ORDER_PREFIX}{product_words}"
        return await self.handle_order_command(command, sender_id, session)

    async def _on_menu(self, result: IntentResult, sender_id: str, session: Session) -> Optional[str]:
        reply = MENU_TEXT
        if result.entities.locations:
            reply += f"\n\n*✅ Great news! We deliver to {result.entities.locations[0].title()}*"
        return reply

    async def _on_delivery(self, result: IntentResult, sender_id: str, session: Session) -> Optional[str]:
        reply = DELIVERY_TEXT
        if result.entities.locations:
            note = LOCATION_DELIVERY_NOTES.get(result.entities.locations[0])
            if note:
                reply += f"\n\n{note}"
        return reply

    async def _on_payment(self, result: IntentResult, sender_id: str, session: Session) -> Optional[str]:
        reply = PAYMENT_TEXT
        if any("coupon" in product for product in result.entities.products):
            reply += "\n\n*🎟️ Coupon Book Special:* Buy Now Pay Later available for the 100+40 book!"
        return reply

    async def _on_help(self, result: IntentResult, sender_id: str, session: Session) -> Optional[str]:
        return self.help_text(session)

    async def _on_complaint(self, result: IntentResult, sender_id: str, session: Session) -> Optional[str]:
        severity = "high" if result.sentiment.label == "negative" else "medium"
        session.state = SessionState.HANDLING_COMPLAINT
        session.complaint = {
            "severity": severity,
            "initial_message": result.utterance,
            "sentiment": result.sentiment.label,
            "timestamp": self.clock().isoformat()
        }
        logger.info(f"⚠️ Complaint logged for {sender_id} (severity: {severity})")

        banner = "🚨 *HIGH PRIORITY COMPLAINT*" if severity == "high" else "📝 *COMPLAINT LOGGED*"
        return (
            "I sincerely apologize for any inconvenience! 🙏\n\n"
            f"{banner}\n\n"
            "Your satisfaction is our priority. I'm escalating this to management immediately.\n\n"
            "*Please provide details:*\n"
            "• What specific problem occurred?\n"
            "• When did this happen?\n"
            "• Order details (if applicable)\n\n"
            "*What exactly went wrong?*"
        )

    async def _on_customer_lookup(self, result: IntentResult, sender_id: str, session: Session) -> Optional[str]:
        # The lookup key is the same substring the number fallback would extract
        match = MOBILE_PATTERN.search(result.utterance or "")
        if match:
            return await self.erp.find_customer_by_mobile(match.group(0))
        if result.entities.phone_numbers:
            return await self.erp.find_customer_by_mobile(result.entities.phone_numbers[0])
        return None

    async def _on_unknown(self, result: IntentResult, sender_id: str, session: Session) -> Optional[str]:
        return None

    # ------------------------------------------------------------------
    # Conversation flows
    # ------------------------------------------------------------------

    def help_text(self, session: Session) -> str:
        order = session.order_in_progress
        if order is None:
            return HELP_TEXT
        return (
            "I see you have an order in progress! 🛒\n\n"
            f"*Current Order:* {order.product['name']}\n"
            f"*Status:* {session.state.value}\n\n"
            "*I can help with:*\n"
            "• Change delivery address\n"
            "• Payment questions\n"
            '• Cancel the order (reply "NO")\n\n'
            + HELP_TEXT
        )

    def handle_complaint_followup(self, text: str, session: Session) -> str:
        complaint = session.complaint or {"severity": "medium"}
        reference = f"#CMP{str(int(time.time() * 1000))[-6:]}"
        complaint["followup_message"] = text
        complaint["reference"] = reference
        complaint["updated"] = self.clock().isoformat()
        session.complaint = complaint
        session.state = SessionState.GREETING

        logger.info(f"📝 Complaint {reference} updated with follow-up details")
        return COMPLAINT_FOLLOWUP_TEXT.format(severity=complaint["severity"].upper(), reference=reference)

    async def handle_order_command(self, text: str, sender_id: str, session: Session) -> str:
        """Start an order from "order [quantity] <product>"."""
        order_text = text[len(ORDER_PREFIX):].strip().lower()
        quantity, order_text = parse_order_quantity(order_text)
        product_key = find_product(order_text)

        if not product_key:
            return (
                "*PRODUCT NOT FOUND*\n\n"
                f"Available products:\n{product_listing()}\n\n"
                '*Example:* "order single bottle"'
            )

        product = PRODUCTS[product_key]
        order = OrderInProgress(
            product_key=product_key,
            product=product,
            quantity=quantity,
            customer_phone=sender_id
        )
        session.order_in_progress = order

        try:
            lookup = await self.erp.lookup_customer(sender_id)
        except ERPError as e:
            logger.warning(f"Customer lookup during order failed (status {e.status_code}): {e.message}")
            lookup = None

        if lookup:
            order.customer_name = lookup["customer"]["name"]
            if lookup["address"]:
                session.state = SessionState.CONFIRMING_ORDER
                return order_confirmation_text(order)

        session.state = SessionState.COLLECTING_ADDRESS
        price = product_line(product)[2:]
        return (
            "*ORDER STARTED*\n\n"
            f"Product: {price}\n"
            f"Quantity: {quantity}\n\n"
            "*Please provide your delivery address:*\n"
            "Include building name, area, and any specific directions."
        )

    async def process_order(self, session: Session, sender_id: str) -> str:
        """Create the confirmed order in the ERP"""
        order = session.order_in_progress
        if order is None:
            session.reset()
            return "There is no order waiting for confirmation. Type \"order [product]\" to start one."

        try:
            customer_name = order.customer_name
            if not customer_name:
                customer = await self.erp.ensure_customer_exists(order.customer_phone or sender_id, order.address)
                if not customer["success"]:
                    return (
                        "*ORDER PROCESSING ERROR*\n\n"
                        f"{customer['message']}\n\n"
                        "Please try again or contact our support team for assistance."
                    )
                customer_name = customer["customer_name"]
                order.customer_name = customer_name

            erp_order = await self.erp.create_sales_order(
                customer_name,
                order.product,
                order.quantity,
                address=order.address,
                customer_phone=order.customer_phone
            )
        except Exception as e:
            logger.error(f"❌ Error processing order for {sender_id}: {e}", exc_info=True)
            return (
                "*ORDER PROCESSING ERROR*\n\n"
                "There was a technical issue while processing your order. Our team has been notified.\n\n"
                "Please try again in a few minutes or contact support directly."
            )

        if not erp_order["success"]:
            return order_error_text(erp_order.get("error"))

        session.reset()
        logger.info(f"✅ Order {erp_order['order_name']} placed for {sender_id}")
        return (
            "*ORDER CONFIRMED* ✅\n\n"
            f"*Order ID:* {erp_order['order_name']}\n"
            f"*Product:* {order.product['name']}\n"
            f"*Quantity:* {order.quantity}\n"
            f"*Total:* AED {order_total(order)}\n\n"
            "*Next Steps:*\n"
            "Our delivery team will contact you within 2 hours to schedule delivery.\n\n"
            "*Delivery Areas:*\n"
            "Dubai, Sharjah, Ajman\n\n"
            "Thank you for choosing our service!"
        )
