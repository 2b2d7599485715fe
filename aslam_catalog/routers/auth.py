import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from aslam_catalog import models, schemas
from aslam_catalog.auth.dependencies import require_admin
from aslam_catalog.db import get_db, settings
from aslam_catalog.security import create_access_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_ttl_minutes() -> int:
    return max(5, int(settings.admin_session_expire_minutes or 480))


def _set_auth_cookie(response: Response, token: str, *, max_age_seconds: int):
    response.set_cookie(
        key="admin_token",
        value=token,
        httponly=True,
        secure=True,
        samesite="lax",
        max_age=max_age_seconds,
        path="/",
    )


@router.post("/login", response_model=schemas.TokenOut)
def login(payload: schemas.LoginPayload, response: Response, db: Session = Depends(get_db)):
    username = payload.username.strip()
    admin = db.query(models.Admin).filter(models.Admin.username == username).first()
    if not admin or not verify_password(payload.password, admin.password_hash):
        logger.warning("Admin login failed username=%s", username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    expires_minutes = _session_ttl_minutes()
    token = create_access_token({"sub": str(admin.id)}, expires_minutes=expires_minutes)
    _set_auth_cookie(response, token, max_age_seconds=expires_minutes * 60)
    return schemas.TokenOut(
        access_token=token,
        expires_in_seconds=expires_minutes * 60,
        admin=schemas.AdminOut.model_validate(admin),
    )


@router.post("/logout", status_code=204)
def logout(response: Response, _: models.Admin = Depends(require_admin)):
    response.delete_cookie("admin_token", path="/")
