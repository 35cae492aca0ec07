from fastapi import FastAPI, Request
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
import os
import logging
from pathlib import Path

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # الموقع مطلوب للتحقق من البصمة
        response.headers["Permissions-Policy"] = "geolocation=(self), camera=(self), microphone=()"

        # HSTS - Enable in production
        if os.environ.get("ENVIRONMENT") == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

from routes.attendance_validation import router as attendance_validation_router, get_used_codes_cache

# App Version
APP_VERSION = "1.0"

app = FastAPI(title="Attendance Presence Engine", version=APP_VERSION, redirect_slashes=False)

app.add_middleware(SecurityHeadersMiddleware)

app.include_router(attendance_validation_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def startup():
    # فهرس TTL لحذف الرموز المستخدمة بعد انتهاء مدتها
    await get_used_codes_cache().ensure_indexes()
    logger.info("✅ Used-code TTL index ready")


# Health endpoint for Kubernetes liveness/readiness probes (without /api prefix)
@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "Attendance Presence Engine", "version": APP_VERSION}


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "Attendance Presence Engine", "version": APP_VERSION}
