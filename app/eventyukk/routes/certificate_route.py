import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventyukk.controller.certificate_controller import (download_certificate,
                                                         generate_bulk,
                                                         generate_certificate,
                                                         get_active_template,
                                                         get_certificate,
                                                         list_my_certificates,
                                                         list_placeholders,
                                                         update_template)
from eventyukk.database import get_db
from eventyukk.dependencies import get_current_user, require_admin
from eventyukk.errors import EventYukkError
from eventyukk.models.user_model import User
from eventyukk.response_model import ErrorResponseModel, ResponseModel, error_response
from eventyukk.schema.certificate_schema import CertificateGenerate, CertificateGenerateBulk, TemplateUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


# ----------------------- Template -----------------------
@router.get("/template", response_description="Get the active certificate template")
async def read_template(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    template = await get_active_template(db)
    return ResponseModel(template, "Template retrieved")


@router.get("/template/placeholders", response_description="List template placeholders")
async def read_placeholders(admin: User = Depends(require_admin)):
    return ResponseModel({"placeholders": list_placeholders()}, "Placeholders retrieved")


@router.put("/template", response_description="Update the active certificate template")
async def write_template(
    template: TemplateUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    data = await update_template(db, template.model_dump(by_alias=True, exclude_none=True))
    return ResponseModel(data, "Template updated successfully")


# ----------------------- Generate -----------------------
@router.post("/generate", response_description="Generate one certificate")
async def generate(
    payload: CertificateGenerate,
    response: Response,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        data = await generate_certificate(db, payload.event_id, payload.participant_id)
        return ResponseModel(data, "Certificate generated successfully")
    except EventYukkError as e:
        return error_response(response, e)
    except SQLAlchemyError as e:
        logger.exception("Certificate generation failed")
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return ErrorResponseModel("Database error", 500, str(e))


@router.post("/generate-bulk", response_description="Generate certificates for every participant")
async def generate_for_event(
    payload: CertificateGenerateBulk,
    response: Response,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        data = await generate_bulk(db, payload.event_id, payload.status or "approved")
        return ResponseModel(data, "Bulk generation finished")
    except EventYukkError as e:
        return error_response(response, e)


# ----------------------- User certificates -----------------------
@router.get("/my-certificates", response_description="List the user's certificates")
async def my_certificates(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    data = await list_my_certificates(db, current_user)
    return ResponseModel(data, "Certificates retrieved")


@router.get("/{certificate_id}", response_description="Get one certificate")
async def certificate_detail(
    certificate_id: int,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        data = await get_certificate(db, current_user, certificate_id)
        return ResponseModel(data, "Certificate retrieved")
    except EventYukkError as e:
        return error_response(response, e)


@router.get("/{certificate_id}/download", response_description="Certificate data for rendering")
async def certificate_download(
    certificate_id: int,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        data = await download_certificate(db, current_user, certificate_id)
        return ResponseModel(data, "Certificate data retrieved")
    except EventYukkError as e:
        return error_response(response, e)
