import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field, field_validator

from clipqueue.core.config import settings
from clipqueue.render.state import RenderSignal, normalize_status
from clipqueue.services.dispatcher import Dispatcher, get_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


class RenderNotification(BaseModel):
    """render callback body; the rendering service itself sends the reference as `id`"""
    render_reference: str = Field(validation_alias=AliasChoices("render_reference", "id"), min_length=1)
    status: str
    url: Optional[str] = None
    error: Optional[str] = None
    progress: Optional[float] = None

    @field_validator("status")
    @classmethod
    def known_status(cls, value: str) -> str:
        return normalize_status(value).value


def verify_signature(x_shotstack_signature: Optional[str] = Header(default=None)):
    secret = settings.RENDER_WEBHOOK_SECRET
    if not secret:
        return
    if not x_shotstack_signature or not hmac.compare_digest(x_shotstack_signature, secret):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")


@router.post("/render", dependencies=[Depends(verify_signature)])
def render_webhook(notification: RenderNotification, dispatcher: Dispatcher = Depends(get_dispatcher)):
    logger.info(f"render webhook: {notification.render_reference} status: {notification.status}")
    signal = RenderSignal.from_external(
        notification.status,
        url=notification.url,
        error=notification.error,
        progress=notification.progress,
    )
    outcome = dispatcher.context.reconciler.handle_webhook(notification.render_reference, signal)

    if not outcome.found:
        return JSONResponse(
            status_code=404,
            content={
                "error": "Clip not found for render reference",
                "render_reference": notification.render_reference,
            },
        )

    return {
        "message": "render webhook processed",
        "render_reference": outcome.render_reference,
        "clip_id": str(outcome.clip_id),
        "status": outcome.status,
        "changed": outcome.changed,
    }
