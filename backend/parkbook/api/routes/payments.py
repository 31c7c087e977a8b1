"""
Payment gateway webhook. The signature covers the raw body, so it is read before any
JSON parsing.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from parkbook.db.session import get_db
from parkbook.services import checkout_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    signature: str | None = Header(None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    raw_body = await request.body()
    return await run_in_threadpool(checkout_service.handle_webhook_event, db, raw_body, signature)
