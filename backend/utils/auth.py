from fastapi import HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from datetime import datetime, timezone, timedelta
import os

SECRET_KEY = os.environ.get('JWT_SECRET', 'presence-engine-dev-secret')
ALGORITHM = "HS256"
DEFAULT_TOKEN_EXPIRE = 4  # ساعات

security = HTTPBearer()


def create_access_token(data: dict, expire_hours: int = DEFAULT_TOKEN_EXPIRE) -> str:
    """إنشاء توكن (تستخدمه الاختبارات وأدوات الإدارة)"""
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(hours=expire_hours)
    to_encode["iat"] = datetime.now(timezone.utc)
    to_encode["jti"] = os.urandom(16).hex()
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """التحقق من التوكن"""
    try:
        return jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="توكن غير صالح أو منتهي الصلاحية")


def require_roles(*roles):
    async def checker(user=Depends(get_current_user)):
        if user.get('role') not in roles:
            raise HTTPException(status_code=403, detail="Access denied for your role")
        return user
    return checker
