import logging

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

import db
from app.errors import NotificationError
from app.services.router import EventRouter
from app.services.sms_gateway import SMSGateway
from app.types.notification_contract import NotificationRequest
from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
_LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Bhishi notifications")

# One pooled HTTP client for Expo and the SMS gateway; the DB engine is lazy.

@app.on_event("startup")
async def startup_event():
    client = httpx.AsyncClient(timeout=settings.PUSH_TIMEOUT)
    app.state.http_client = client
    app.state.router = EventRouter(settings, client=client)
    app.state.sms_gateway = SMSGateway(settings)


@app.on_event("shutdown")
async def shutdown_event():
    await app.state.http_client.aclose()
    await db.dispose_engine()


def get_router(request: Request) -> EventRouter:
    return request.app.state.router


def get_sms_gateway(request: Request) -> SMSGateway:
    return request.app.state.sms_gateway


@app.exception_handler(NotificationError)
async def notification_error_handler(request: Request, exc: NotificationError):
    if exc.status_code >= 500:
        _LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        _LOGGER.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


# --------------------------------------------
# Endpoints
# --------------------------------------------
@app.post("/functions/v1/send-notifications")
async def send_notifications(body: NotificationRequest, router: EventRouter = Depends(get_router)):
    result = await router.dispatch(body.type, body.data)
    return result.to_response()


@app.post("/functions/v1/send-sms")
async def send_sms(body: NotificationRequest, gateway: SMSGateway = Depends(get_sms_gateway)):
    return await gateway.handle(body.type, body.data)
