import hmac
from datetime import datetime, timedelta, timezone
from jose import jwt
from ladyluck.core.config import settings

# production tokens come from the account service; this mints the same shape for tests and dev tooling
def create_access_token(sub: str) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.ACCESS_TOKEN_MINUTES)
    payload = {"sub": sub, "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_access_token(token: str) -> str:
    # raises jose.JWTError on bad signature / expiry
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    return str(payload["sub"])

def admin_token_ok(presented: str | None) -> bool:
    if not settings.ADMIN_TOKEN or not presented:
        return False
    return hmac.compare_digest(presented, settings.ADMIN_TOKEN)
