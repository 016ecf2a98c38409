import httpx
import logging
from config.settings import WHATSAPP_TOKEN, PHONE_NUMBER_ID
from utils.retry import retry_api_call
from utils.error_handler import WhatsAppAPIError

logger = logging.getLogger(__name__)


class WhatsAppAPI:
    """WhatsApp Business Cloud API client (Async)"""

    BASE_URL = "https://graph.facebook.com/v18.0"

    def __init__(self, token: str = None, phone_number_id: str = None, transport: httpx.AsyncBaseTransport = None):
        self.token = token or WHATSAPP_TOKEN
        self.phone_number_id = phone_number_id or PHONE_NUMBER_ID
        self.headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        }
        self.client = httpx.AsyncClient(timeout=10.0, transport=transport)

    def _messages_url(self, phone_number_id: str = None) -> str:
        return f"{self.BASE_URL}/{phone_number_id or self.phone_number_id}/messages"

    @retry_api_call(max_attempts=3)
    async def _post(self, url: str, payload: dict) -> httpx.Response:
        return await self.client.post(url, headers=self.headers, json=payload)

    async def send_message(self, to: str, message: str, phone_number_id: str = None):
        """
        Send a text message to a WhatsApp user (async)

        Args:
            to: Phone number in international format (e.g., "971501234567")
            message: Text message to send
            phone_number_id: Business number to send from; defaults to the
                configured PHONE_NUMBER_ID

        Returns:
            dict: API response
        """
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "text": {
                "body": message
            }
        }

        try:
            response = await self._post(self._messages_url(phone_number_id), payload)
            response.raise_for_status()

            data = response.json()
            logger.info(f"✓ Message sent to {to}")
            return data

        except httpx.HTTPStatusError as e:
            logger.error(f"❌ Error sending message to {to}: {e}")
            try:
                error_details = e.response.json()
            except ValueError:
                error_details = {"response": e.response.text}
            raise WhatsAppAPIError(
                message=f"Failed to send message to {to}",
                status_code=e.response.status_code,
                details=error_details
            )
        except httpx.RequestError as e:
            logger.error(f"❌ Error sending message to {to}: {e}")
            raise WhatsAppAPIError(
                message=f"Failed to send message to {to}",
                status_code=500,
                details={"error": str(e)}
            )

    async def mark_message_as_read(self, message_id: str, phone_number_id: str = None):
        """Mark a message as read (async); failures are only logged"""
        payload = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id
        }

        try:
            response = await self.client.post(self._messages_url(phone_number_id), headers=self.headers, json=payload)
            response.raise_for_status()
            logger.info(f"✓ Marked message {message_id} as read")
            return response.json()

        except httpx.HTTPError as e:
            logger.error(f"❌ Error marking message as read: {e}")
            return None

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()
