"""FastAPI dependencies for database access, the acting user and order services."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from repairshop.db.enums import Role
from repairshop.db.models import User
from repairshop.db.session import SessionLocal
from repairshop.services.order_service import OrderEngine, build_engine

# Identity is asserted by the upstream gateway
USER_HEADER = "X-User-Id"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    x_user_id: str | None = Header(None, alias=USER_HEADER),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the acting staff member from the gateway header.

    Raises:
        HTTPException 401: header missing/malformed, unknown or inactive user
        HTTPException 403: stored role is not a known Role
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")
    if not Role.has_value(user.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{user.role}'. Contact administrator.",
        )
    return user


def require_roles(allowed_roles: list[Role]):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.post("/x", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """
    allowed = {r.value for r in allowed_roles}

    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{user.role}' not authorized for this action",
            )
        return user

    return dependency


def get_order_engine(db: Session = Depends(get_db)) -> OrderEngine:
    return build_engine(db)
