"""
Email microservice router - /api/email

Called by the platform's notification dispatcher (and by operators) to send,
queue and inspect emails. When EMAIL_SERVICE_API_KEY is set, every request
must carry it in the X-Email-Service-Key header.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ... import config
from ...database import get_db
from ...email_service import deliver_email
from ...shared.validators import validate_email
from .schemas import (
    EmailLogPage,
    EmailLogResponse,
    EmailStats,
    QueueEmailRequest,
    SendEmailRequest,
    TemplateEmailRequest,
    TestEmailRequest,
)
from .service import EmailService

logger = logging.getLogger(__name__)


async def verify_service_key(x_email_service_key: Optional[str] = Header(None)):
    if config.EMAIL_SERVICE_API_KEY and x_email_service_key != config.EMAIL_SERVICE_API_KEY:
        logger.warning("⚠️ Rejected email service request with missing or invalid key")
        raise HTTPException(status_code=401, detail="Invalid email service key")


router = APIRouter(prefix="/api/email", tags=["Email"], dependencies=[Depends(verify_service_key)])


def get_email_transport():
    """Dependency for the outbound transport; overridden in tests"""
    return deliver_email


def get_email_service(db: Session = Depends(get_db), transport=Depends(get_email_transport)) -> EmailService:
    """Dependency injection for EmailService"""
    return EmailService(db, transport)


def _require_recipient(to: Optional[str]) -> str:
    if not to or not to.strip():
        raise HTTPException(status_code=400, detail="Recipient email is required")
    try:
        return validate_email(to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _send_result(result: dict):
    if result["success"]:
        return {"success": True, "messageId": result["messageId"]}
    return JSONResponse(
        status_code=502,
        content={"success": False, "error": result["error"], "queued": result["queued"]},
    )


# ============================================================================
# SENDING
# ============================================================================


@router.post("/send")
async def send_email(data: SendEmailRequest, service: EmailService = Depends(get_email_service)):
    to = _require_recipient(data.to)
    if not data.subject or not (data.html or data.text):
        raise HTTPException(status_code=400, detail="Subject and content (html or text) are required")

    result = await service.send(
        to,
        data.subject,
        html=data.html,
        text=data.text,
        from_address=data.from_address,
        email_type=data.email_type,
        recipient_name=data.recipient_name,
    )
    return _send_result(result)


@router.post("/template")
async def send_template_email(data: TemplateEmailRequest, service: EmailService = Depends(get_email_service)):
    to = _require_recipient(data.to)
    if not data.templateId:
        raise HTTPException(status_code=400, detail="Template id is required")

    result = await service.send_template(
        to, data.templateId, data.data, subject=data.subject, recipient_name=data.recipient_name
    )
    return _send_result(result)


@router.post("/queue", status_code=202)
async def queue_email(data: QueueEmailRequest, service: EmailService = Depends(get_email_service)):
    to = _require_recipient(data.to)
    if not data.templateId and (not data.subject or not (data.html or data.text)):
        raise HTTPException(status_code=400, detail="Subject and content (html or text) are required")

    log = service.queue(
        to,
        subject=data.subject,
        html=data.html,
        text=data.text,
        send_at=data.sendAt,
        template_id=data.templateId,
        data=data.data,
        email_type=data.email_type,
        from_address=data.from_address,
    )
    return {"success": True, "queued": True, "id": log.id, "sendAt": log.send_at}


@router.post("/process-queue")
async def process_queue(
    limit: int = Query(50, ge=1, le=500),
    service: EmailService = Depends(get_email_service),
):
    return await service.process_queue(limit)


# ============================================================================
# TEMPLATES
# ============================================================================


@router.get("/templates")
async def list_templates(service: EmailService = Depends(get_email_service)):
    return {"templates": service.list_templates()}


@router.get("/template/{template_id}")
async def preview_template(template_id: str, service: EmailService = Depends(get_email_service)):
    return service.preview_template(template_id)


# ============================================================================
# DIAGNOSTICS
# ============================================================================


@router.get("/test")
async def verify_transport(service: EmailService = Depends(get_email_service)):
    return service.verify()


@router.post("/test")
async def send_test_email(data: TestEmailRequest, service: EmailService = Depends(get_email_service)):
    to = _require_recipient(data.to)
    result = await service.send_test(to, data.templateId)
    return _send_result(result)


@router.get("/stats", response_model=EmailStats)
async def get_stats(service: EmailService = Depends(get_email_service)):
    return service.get_stats()


@router.get("/logs", response_model=EmailLogPage)
async def get_logs(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    status: Optional[str] = Query(None),
    email_type: Optional[str] = Query(None, alias="type"),
    to_email: Optional[str] = Query(None, alias="to"),
    template_id: Optional[str] = Query(None, alias="templateId"),
    service: EmailService = Depends(get_email_service),
):
    page = service.get_logs(
        limit, offset, status=status, email_type=email_type, to_email=to_email, template_id=template_id
    )
    page["logs"] = [EmailLogResponse.model_validate(log) for log in page["logs"]]
    return page
