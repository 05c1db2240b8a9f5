from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from jwt.exceptions import PyJWTError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_session
from app.schemas.auth import RequestScope
from app.services.availability_service import AvailabilityCalculator
from app.services.booking_service import BookingService
from app.services.package_service import PackageLedger
from app.services.queue_service import QueueService

bearer_scheme = HTTPBearer(auto_error=False)

async def get_request_scope(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> RequestScope:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        if payload.get("hospital_id") is None:
            raise credentials_exception
        # Tokens are issued upstream, we only need who and where
        return RequestScope(
            user_id=payload.get("sub"),
            hospital_id=payload.get("hospital_id"),
            role=payload.get("role", "staff"),
        )
    except (PyJWTError, ValidationError):
        raise credentials_exception

async def get_availability(session: AsyncSession = Depends(get_session)) -> AvailabilityCalculator:
    return AvailabilityCalculator(session)

async def get_booking_service(session: AsyncSession = Depends(get_session)) -> BookingService:
    return BookingService(session)

async def get_queue_service(session: AsyncSession = Depends(get_session)) -> QueueService:
    return QueueService(session)

async def get_package_ledger(session: AsyncSession = Depends(get_session)) -> PackageLedger:
    return PackageLedger(session)
