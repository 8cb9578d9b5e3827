from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from . import models
from .database import get_db


def get_current_user(
    x_username: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> models.User:
    """Resolve the user named by the ``X-Username`` header set by the authenticating proxy."""
    if not x_username or not x_username.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = (
        db.query(models.User)
        .filter(models.User.username == x_username.strip().lower())
        .one_or_none()
    )
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return user


def require_normal(user: models.User = Depends(get_current_user)) -> models.User:
    """Users allowed to record lab work: everyone but end users."""
    if user.role not in ("normal", "admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient privileges")
    return user
