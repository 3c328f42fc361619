from datetime import datetime

import jwt
from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from clinic_scheduler.auth import jwt_handler
from clinic_scheduler.auth.context import BOT, SUPER_ADMIN, CallerContext
from clinic_scheduler.database import get_db
from clinic_scheduler.models.clinic import Clinic
from clinic_scheduler.models.user import User

security = HTTPBearer()

INACTIVE_SUBSCRIPTIONS = {"CANCELLED", "SUSPENDED"}


def ensure_clinic_active(clinic: Clinic | None, status_code: int = 403) -> Clinic:
    if clinic is None:
        raise HTTPException(status_code=status_code, detail="Clinic not found")
    if not clinic.is_active:
        raise HTTPException(status_code=status_code, detail="Clinic is deactivated")
    if (clinic.subscription_status or "").upper() in INACTIVE_SUBSCRIPTIONS:
        raise HTTPException(status_code=status_code, detail="Clinic subscription is not active")
    return clinic


def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> CallerContext:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.query(User).filter(User.id == int(subject)).first()
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")

    tenant_id = user.clinic_id
    if user.role == SUPER_ADMIN:
        # Super admins act on the clinic named in the token.
        tenant_id = payload.get("clinic_id") or tenant_id
    if tenant_id is None:
        raise HTTPException(status_code=403, detail="User is not attached to a clinic")

    ensure_clinic_active(db.get(Clinic, tenant_id))
    return CallerContext(tenant_id=tenant_id, role=user.role, user_id=user.id)


def require_roles(*roles: str):
    allowed = set(roles) | {SUPER_ADMIN}

    def dependency(caller: CallerContext = Depends(get_current_caller)) -> CallerContext:
        if caller.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient role for this action")
        return caller

    return dependency


def get_channel_caller(
    x_api_key: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> CallerContext:
    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key missing")

    clinic = db.query(Clinic).filter(Clinic.api_key == x_api_key).first()
    if clinic is None:
        raise HTTPException(status_code=401, detail="Invalid API key")
    ensure_clinic_active(clinic, status_code=401)

    if clinic.api_key_expires_at is not None and clinic.api_key_expires_at < datetime.now():
        raise HTTPException(status_code=401, detail="API key expired")
    if not clinic.bot_enabled:
        raise HTTPException(status_code=403, detail="Automated booking is disabled for this clinic")

    return CallerContext(tenant_id=clinic.id, role=BOT)
