import os
from dotenv import load_dotenv

load_dotenv()

# WhatsApp Business API Settings
WHATSAPP_TOKEN = os.getenv("WHATSAPP_TOKEN")
PHONE_NUMBER_ID = os.getenv("PHONE_NUMBER_ID")
WEBHOOK_VERIFY_TOKEN = os.getenv("WEBHOOK_VERIFY_TOKEN")

# ERP Settings (Frappe / ERPNext resource API)
ERP_URL = os.getenv("ERP_URL", "").rstrip("/")
ERP_API_KEY = os.getenv("ERP_API_KEY")
ERP_API_SECRET = os.getenv("ERP_API_SECRET")
ERP_CUSTOM_DOCTYPES = [
    doctype.strip()
    for doctype in os.getenv("ERP_CUSTOM_DOCTYPES", "Address").split(",")
    if doctype.strip()
]
ERP_ORDER_ITEM_CODE = os.getenv("ERP_ORDER_ITEM_CODE", "5 Gallon Filled")
ERP_DEFAULT_TERRITORY = os.getenv("ERP_DEFAULT_TERRITORY", "DXB 02")
ERP_TIMEOUT = float(os.getenv("ERP_TIMEOUT", 15))
ERP_MAX_RETRIES = int(os.getenv("ERP_MAX_RETRIES", 3))

# NLP Settings
NLP_ENABLED = os.getenv("NLP_ENABLED", "true").lower() == "true"
try:
    NLP_CONFIDENCE_THRESHOLD = float(os.getenv("NLP_CONFIDENCE_THRESHOLD", 0.6))
except ValueError:
    NLP_CONFIDENCE_THRESHOLD = 0.6
ENABLE_NLP_ANALYTICS = os.getenv("ENABLE_NLP_ANALYTICS", "false").lower() == "true"

# Keep-alive (free hosting plans put idle services to sleep)
KEEP_ALIVE_URL = os.getenv("KEEP_ALIVE_URL")
KEEP_ALIVE_INTERVAL = int(os.getenv("KEEP_ALIVE_INTERVAL", 25 * 60))

# Bot Settings
BOT_NAME = os.getenv("BOT_NAME", "Water Delivery Assistant")
PORT = int(os.getenv("PORT", 8000))

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
