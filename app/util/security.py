import jwt
from datetime import datetime, timedelta, timezone
from app.config import settings


def create_token(sub: str, tenant_id: str) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.JWT_EXP_MIN)
    payload = {
        "sub": sub,
        "tenant_id": tenant_id,
        "iss": settings.JWT_ISS,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.APP_SECRET, algorithm="HS256")


def decode_token(token: str) -> dict:
    return jwt.decode(
        token, settings.APP_SECRET, algorithms=["HS256"],
        issuer=settings.JWT_ISS, options={"verify_aud": False, "require": ["sub", "exp"]},
    )
