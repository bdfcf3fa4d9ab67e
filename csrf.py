import time

from fastapi import HTTPException, Request
from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings

CSRF_HEADER = "X-CSRF-Token"


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.csrf_secret, salt="farm-csrf-token")


def generate_csrf_token(user_id: int = 1, max_age_hours: int = 2) -> str:
    issued = int(time.time())
    token_data = {"u": user_id, "exp": issued + max_age_hours * 3600}
    return _serializer().dumps(token_data)


def validate_csrf_token(token: str, user_id: int = 1, max_age_hours: int = 2) -> bool:
    if not token:
        return False
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except BadSignature:
        return False
    if data.get("u") != user_id:
        return False
    return int(time.time()) <= data.get("exp", 0)


def require_csrf(request: Request) -> None:
    if not validate_csrf_token(request.headers.get(CSRF_HEADER, "")):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
