"""FastAPI dependency injection helpers."""

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from taxitour.domain.enums import UserRole
from taxitour.infrastructure.database import async_session_factory
from taxitour.infrastructure.repositories import UserRepository
from taxitour.infrastructure.security import InvalidTokenError
from taxitour.realtime.gateway import RealtimeGateway

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_realtime(request: Request) -> RealtimeGateway:
    """The gateway built for this application instance."""
    return request.app.state.realtime


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
):
    """Resolve the bearer token to a user row; same verifier as the socket layer."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    verifier = get_realtime(request).authenticator.verifier
    try:
        user_id = verifier.verify(credentials.credentials)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=exc.kind.value) from exc

    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def require_admin(user=Depends(get_current_user)):
    if user.role != UserRole.ADMIN.value:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
