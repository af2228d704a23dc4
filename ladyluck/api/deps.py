from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from ladyluck.core.db import SessionLocal
from ladyluck.core.security import admin_token_ok, decode_access_token

bearer = HTTPBearer(auto_error=False)

async def get_db():
    async with SessionLocal() as session:
        yield session

async def get_current_user_id(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> str:
    if not creds:
        raise HTTPException(status_code=401, detail="Missing token")
    try:
        return decode_access_token(creds.credentials)
    except (JWTError, KeyError):
        raise HTTPException(status_code=401, detail="Invalid token")

async def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
    if not admin_token_ok(x_admin_token):
        raise HTTPException(status_code=403, detail="Admin token required")
