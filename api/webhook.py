from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import PlainTextResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Optional
import logging
import json
import asyncio
import time
from config.settings import (
    WEBHOOK_VERIFY_TOKEN,
    BOT_NAME,
    ENVIRONMENT,
    NLP_ENABLED,
    NLP_CONFIDENCE_THRESHOLD,
    ENABLE_NLP_ANALYTICS
)
from bot.inbound import InboundMessage, extract_messages
from bot.response_resolver import ResponseResolver
from bot.whatsapp_api import WhatsAppAPI
from database.session_store import SessionStore, mask_phone
from services.erp_client import ERPClient
from services.intent_classifier import Intent, IntentClassifier
from services.keep_alive import keep_alive_loop
from services.nlp_analytics import NLPAnalytics
from utils.error_handler import register_error_handlers, WhatsAppAPIError, ClassifierError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="WhatsApp ERP Assistant",
    version="1.0.0",
    description="WhatsApp Business webhook relay with ERP customer lookup and intent classification"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register error handlers
register_error_handlers(app)

# Initialize components
whatsapp_api = WhatsAppAPI()
erp_client = ERPClient()
intent_classifier = IntentClassifier()
nlp_analytics = NLPAnalytics(enabled=ENABLE_NLP_ANALYTICS)
session_store = SessionStore()
resolver = ResponseResolver(erp_client, intent_classifier, nlp_analytics)

background_tasks = set()


class TrainRequest(BaseModel):
    utterance: str
    intent: str


def verify_subscription(mode: Optional[str], token: Optional[str], challenge: Optional[str], expected_token: Optional[str]) -> Optional[str]:
    """Challenge to echo back, or None when the verification must be refused"""
    if mode == "subscribe" and expected_token and token == expected_token:
        return challenge or ""
    return None


def _start_background(coro):
    task = asyncio.create_task(coro)
    background_tasks.add(task)
    task.add_done_callback(background_tasks.discard)
    return task


@app.on_event("startup")
async def startup_event():
    """Train the classifier and start the keep-alive pinger"""
    if NLP_ENABLED:
        _start_background(intent_classifier.train())
        logger.info("🧠 Intent classifier training started in the background")
    else:
        logger.info("ℹ️ NLP disabled, using keyword fallbacks only")

    _start_background(keep_alive_loop())


@app.on_event("shutdown")
async def shutdown_event():
    for task in list(background_tasks):
        task.cancel()
    await whatsapp_api.close()
    await erp_client.close()
    logger.info("👋 Shutdown complete")


@app.get("/")
async def root():
    """Service overview"""
    return {
        "status": "ok",
        "service": BOT_NAME,
        "environment": ENVIRONMENT,
        "nlp": {
            "enabled": NLP_ENABLED,
            "trained": intent_classifier.is_trained,
            "confidence_threshold": NLP_CONFIDENCE_THRESHOLD
        },
        "active_sessions": len(session_store)
    }


@app.get("/health")
async def health_check():
    """Health check with component status"""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "components": {}
    }

    if whatsapp_api.token and whatsapp_api.phone_number_id:
        health_status["components"]["whatsapp_api"] = "configured"
    else:
        health_status["components"]["whatsapp_api"] = "not_configured"
        health_status["status"] = "degraded"

    if erp_client.base_url:
        health_status["components"]["erp"] = "configured"
    else:
        health_status["components"]["erp"] = "not_configured"
        health_status["status"] = "degraded"

    if not NLP_ENABLED:
        health_status["components"]["intent_classifier"] = "disabled"
    elif intent_classifier.is_trained:
        health_status["components"]["intent_classifier"] = "ready"
    else:
        health_status["components"]["intent_classifier"] = "training"

    return health_status


@app.get("/webhook")
async def verify_webhook(request: Request):
    """
    Webhook verification endpoint for WhatsApp
    Meta will call this to verify your webhook
    """
    mode = request.query_params.get("hub.mode")
    token = request.query_params.get("hub.verify_token")
    challenge = request.query_params.get("hub.challenge")

    logger.info(f"Webhook verification request: mode={mode}")

    verified = verify_subscription(mode, token, challenge, WEBHOOK_VERIFY_TOKEN)
    if verified is None:
        logger.error("❌ Webhook verification failed")
        raise HTTPException(status_code=403, detail="Verification failed")

    logger.info("✓ Webhook verified successfully")
    return PlainTextResponse(content=verified, status_code=200)


@app.post("/webhook")
async def receive_webhook(request: Request):
    """
    Receive incoming WhatsApp messages

    Every text message is answered before the delivery is acknowledged.
    The acknowledgement is always 200 so WhatsApp does not redeliver.
    """
    body_bytes = await request.body()
    if not body_bytes:
        logger.warning("⚠️ Empty body received!")
        return {"status": "ok"}

    try:
        body = json.loads(body_bytes)
    except ValueError as e:
        logger.error(f"❌ Malformed webhook payload: {e}")
        return {"status": "ok"}

    messages = extract_messages(body)
    if not messages:
        # Status updates and non-text messages
        return {"status": "ok"}

    logger.info(f"📦 Webhook delivered {len(messages)} message(s)")
    await asyncio.gather(*(process_message(message) for message in messages))
    return {"status": "ok"}


async def process_message(message: InboundMessage):
    """
    Resolve and send the reply for one message

    Holds the sender's session lock for the whole exchange so replies to one
    sender go out in order. Errors are logged, never raised.
    """
    start_time = time.time()
    sender = mask_phone(message.sender_id)

    try:
        async with session_store.session(message.sender_id) as session:
            logger.info(f"📨 Processing message from {sender} (state: {session.state.value})")

            if message.message_id:
                await whatsapp_api.mark_message_as_read(message.message_id, message.phone_number_id)

            reply = await resolver.resolve(message, session)
            await whatsapp_api.send_message(message.sender_id, reply, message.phone_number_id)

        logger.info(f"✅ Replied to {sender} in {time.time() - start_time:.2f}s")

    except WhatsAppAPIError as e:
        logger.error(
            f"❌ Could not deliver reply to {sender}: {e.message}",
            extra={"status_code": e.status_code, "details": e.details}
        )
    except Exception as e:
        logger.error(f"❌ Error processing message from {sender}: {e}", exc_info=True)


@app.get("/sessions")
async def list_sessions():
    """Active sessions with masked phone numbers"""
    return {
        "total": len(session_store),
        "sessions": session_store.snapshot()
    }


@app.get("/test-nlp/{message}")
async def test_nlp(message: str):
    """Classify a message without replying to anyone"""
    if not intent_classifier.is_trained:
        raise ClassifierError("Intent classifier is not trained yet", details=intent_classifier.get_model_stats())

    result = await intent_classifier.classify(message)
    return {
        "input": message,
        "result": result.to_dict(),
        "would_use_nlp": NLP_ENABLED and result.confidence > NLP_CONFIDENCE_THRESHOLD,
        "confidence_threshold": NLP_CONFIDENCE_THRESHOLD
    }


@app.post("/nlp-train")
async def nlp_train(request: TrainRequest):
    """Add a training utterance and retrain the classifier"""
    if Intent.from_label(request.intent) is Intent.UNKNOWN:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown intent '{request.intent}'. Valid intents: "
                   f"{', '.join(i.value for i in Intent if i is not Intent.UNKNOWN)}"
        )

    added = await intent_classifier.add_training_data(request.utterance, request.intent)
    if not added:
        raise ClassifierError("Retraining failed", details={"utterance": request.utterance})

    return {
        "success": True,
        "message": f"Added '{request.utterance}' to intent '{request.intent}'",
        "model": intent_classifier.get_model_stats()
    }


@app.get("/nlp-analytics")
async def get_nlp_analytics():
    """Classifier usage statistics"""
    return {
        "analytics": nlp_analytics.summary(),
        "model": intent_classifier.get_model_stats(),
        "confidence_threshold": NLP_CONFIDENCE_THRESHOLD
    }


@app.get("/test-erp")
async def test_erp():
    """Check the ERP credentials; ERP failures surface as 502"""
    data = await erp_client.get_logged_user()
    return {
        "status": "success",
        "erp_url": erp_client.base_url,
        "logged_user": data.get("message")
    }


if __name__ == "__main__":
    import uvicorn
    from config.settings import PORT

    logger.info(f"🚀 Starting {BOT_NAME} on port {PORT}...")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
