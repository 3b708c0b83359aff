import hashlib
import hmac
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse

from flux.ai_service import AIService
from flux.config import Config
from flux.conversation import Conversation
from flux.graph_api import GraphApi, GraphApiSender
from flux.market import MarketService
from flux.message import Message, Status
from flux.profile_archive import create_profile_archive
from flux.session_store import create_session_store
from flux.utility import drain_background_tasks, run_blocking, run_in_background
from flux.weather import WeatherService

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

logger = logging.getLogger("app")


def configure_logging():
    logging.basicConfig(level=Config.log_level, format=LOG_FORMAT)


def build_conversation(store):
    return Conversation(
        store,
        GraphApiSender(timeout=Config.collaborator_timeout_seconds),
        WeatherService(),
        MarketService(),
        AIService(),
        archive=create_profile_archive(),
        progress_delays=Config.progress_delays,
        timeout=Config.collaborator_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        configure_logging()
        logger.info("Starting initialization...")
        Config.check_env_variables()
        Config.print_config()
        if getattr(app.state, "store", None) is None:
            app.state.store = create_session_store()
        if getattr(app.state, "conversation", None) is None:
            app.state.conversation = build_conversation(app.state.store)
    except Exception as e:
        logger.error(f"CRITICAL CRASH DURING LIFESPAN: {str(e)}", exc_info=True)
        raise e

    yield

    await drain_background_tasks()


app = FastAPI(lifespan=lifespan)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/webhook")
async def verify_webhook(request: Request):
    mode = request.query_params.get("hub.mode")
    token = request.query_params.get("hub.verify_token")
    challenge = request.query_params.get("hub.challenge")

    if mode != "subscribe" or token != Config.verify_token:
        raise HTTPException(status_code=403, detail="Forbidden")

    return PlainTextResponse(challenge or "")


@app.post("/webhook")
async def handle_webhook(request: Request):
    raw_body = await request.body()
    signature = request.headers.get("x-hub-signature-256")

    try:
        verify_request_signature(raw_body, signature)
    except ValueError:
        raise HTTPException(status_code=403, detail="Invalid signature")

    try:
        payload = await request.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    if payload.get("object") == "whatsapp_business_account":
        for entry in payload.get("entry", []):
            for change in entry.get("changes", []):
                value = change.get("value") or {}
                sender_phone_number_id = value.get("metadata", {}).get("phone_number_id")

                for status in value.get("statuses", []) or []:
                    handle_status(status)

                for raw_message in value.get("messages", []) or []:
                    run_in_background(
                        process_message,
                        request.app.state.conversation,
                        request.app.state.store,
                        sender_phone_number_id,
                        raw_message,
                    )

    return PlainTextResponse("EVENT_RECEIVED")


@app.get("/")
async def health_check():
    return JSONResponse({
        "message": "Flux farm assistant is running",
        "endpoints": ["POST /webhook - WhatsApp webhook endpoint"]
    })


async def process_message(conversation, store, sender_phone_number_id, raw_message):
    message = Message(raw_message, sender_phone_number_id)

    if not await store.mark_seen(message.id):
        logger.info("Skipping duplicate delivery of message %s", message.id)
        return

    if not message.is_text:
        logger.info("Ignoring %s message %s from %s", message.type, message.id, message.from_)
        return

    if sender_phone_number_id and message.id:
        try:
            await run_blocking(GraphApi.mark_read, sender_phone_number_id, message.id,
                               timeout=Config.collaborator_timeout_seconds)
        except Exception:
            logger.warning("Could not mark message %s as read", message.id, exc_info=True)

    await conversation.handle_incoming_message(message.from_, message.text, message.chat)


def handle_status(raw_status):
    status = Status(raw_status)
    if status.status not in ("delivered", "read", "failed"):
        return
    logger.info(
        "Message %s to %s was %s", status.message_id, status.recipient_phone_number, status.status
    )


def verify_request_signature(raw_body, signature_header):
    if not Config.app_secret:
        logger.warning("APP_SECRET is not set; skipping webhook signature check")
        return

    if not signature_header:
        raise ValueError("Missing x-hub-signature-256 header")

    try:
        _, signature_hash = signature_header.split("=", 1)
    except ValueError:
        raise ValueError("Invalid signature header")

    expected = hmac.new(
        Config.app_secret.encode("utf-8"),
        msg=raw_body,
        digestmod=hashlib.sha256
    ).hexdigest()

    if not hmac.compare_digest(signature_hash, expected):
        raise ValueError("Signature mismatch")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=Config.port, reload=False)
