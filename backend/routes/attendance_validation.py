from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Optional
from pymongo.errors import PyMongoError
from database import db
from models.attendance_types import AttendanceTypeConfig, DEFAULT_CODE_MAX_DISTANCE_M, Evidence
from utils.auth import get_current_user, require_roles
from utils.error_codes import ErrorCode, create_error_response
from services.code_generator import generate_access_code, render_qr_png_base64
from services.network_validator import resolve_client_ip
from services.replay_guard import MongoCodeCache, ReplayGuard
from services.validation_engine import ValidationEngine
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/attendance-validation", tags=["attendance_validation"])

# الأدوار المسموح لها بإصدار رموز QR
CODE_ADMIN_ROLES = ['admin', 'hr_manager']

_engine: Optional[ValidationEngine] = None


def get_used_codes_cache() -> MongoCodeCache:
    return MongoCodeCache(db.used_codes)


def get_validation_engine() -> ValidationEngine:
    """محرك واحد لكل العملية - بدون حالة غير ذاكرة الرموز"""
    global _engine
    if _engine is None:
        _engine = ValidationEngine(ReplayGuard(get_used_codes_cache()))
    return _engine


def _request_evidence(request: Request) -> dict:
    return {
        "client_ip": request.client.host if request.client else None,
        "forwarded_for": request.headers.get("x-forwarded-for"),
        "real_ip": request.headers.get("x-real-ip"),
    }


class ValidateRequest(BaseModel):
    attendance_type: AttendanceTypeConfig
    lat: Optional[float] = None
    lng: Optional[float] = None
    code: Optional[str] = None


class GenerateCodeRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    location: Optional[dict] = None
    max_distance: int = Field(default=DEFAULT_CODE_MAX_DISTANCE_M, ge=1, le=10000)
    require_location: bool = False
    one_time_use: bool = False
    expires_at: Optional[datetime] = None


@router.post("/validate")
async def validate_presence(
    req: ValidateRequest,
    request: Request,
    user=Depends(get_current_user),
    engine: ValidationEngine = Depends(get_validation_engine)
):
    """
    Validate punch evidence against an attendance type configuration.
    IP evidence is read from the request itself (X-Forwarded-For, X-Real-IP, client host).
    """
    evidence = Evidence(
        lat=req.lat,
        lng=req.lng,
        code=req.code,
        employee_id=user.get('employee_id') or user.get('user_id'),
        **_request_evidence(request)
    )

    try:
        verdict = await engine.validate(req.attendance_type, evidence)
    except PyMongoError as e:
        logger.error(f"Attendance validation error: {e}")
        return JSONResponse(status_code=500, content=create_error_response(ErrorCode.GENERAL_SERVER_ERROR, str(e)))

    return JSONResponse(status_code=verdict.status_code, content=verdict.model_dump(mode="json"))


@router.get("/client-ip")
async def get_client_ip(request: Request, user=Depends(get_current_user)):
    """Effective client IP as the network validator sees it"""
    evidence = _request_evidence(request)
    return {"ip": resolve_client_ip(evidence["client_ip"], evidence["forwarded_for"], evidence["real_ip"])}


@router.post("/codes")
async def generate_code(req: GenerateCodeRequest, user=Depends(require_roles(*CODE_ADMIN_ROLES))):
    """Generate a QR code entry for an attendance type's config.qr_codes"""
    expires_at = req.expires_at
    if expires_at is not None:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= datetime.now(timezone.utc):
            raise HTTPException(status_code=422, detail="expires_at must be in the future")

    try:
        entry = generate_access_code(
            name=req.name,
            location=req.location,
            max_distance=req.max_distance,
            require_location=req.require_location,
            one_time_use=req.one_time_use,
            expires_at=expires_at
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    logger.info(f"QR code {entry['id']} generated by {user.get('user_id')}")
    return {
        "message": "QR code generated successfully.",
        "qr_code": entry,
        "qr_image": render_qr_png_base64(entry["code"]),
    }
