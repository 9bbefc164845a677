from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from src.application.errors import AuthError
from src.config.settings import Settings
from src.infrastructure.auth.context import AuthContext, fetch_role

PUBLIC_PATHS: tuple[str, ...] = (
    "/api/v1/health",
    "/docs",
    "/openapi.json",
    "/redoc",
)


def _bearer_token(request: Request) -> str:
    authorization = request.headers.get("Authorization")
    if not authorization:
        raise AuthError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Invalid Authorization header")
    return token.strip()


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolves the bearer token into an `AuthContext` on `request.state`.

    The role comes from the local profile table, never from token claims.
    """

    def __init__(self, app, *, settings: Settings) -> None:
        super().__init__(app)
        self.settings = settings

    @staticmethod
    def _is_public(request: Request) -> bool:
        # CORS preflight carries no credentials
        if request.method == "OPTIONS":
            return True
        return request.url.path.startswith(PUBLIC_PATHS)

    async def _authenticate(self, request: Request) -> AuthContext:
        state = request.app.state
        jwt_service = getattr(state, "jwt_service", None)
        session_factory = getattr(state, "session_factory", None)
        if jwt_service is None or session_factory is None:
            raise RuntimeError("Auth middleware used before the app was wired")

        verified = jwt_service.verify(_bearer_token(request))
        async with session_factory() as session:
            role = await fetch_role(session, verified.subject)
        return AuthContext(user_id=verified.subject, role=role, claims=verified.claims)

    async def dispatch(self, request: Request, call_next) -> Response:
        if self._is_public(request):
            return await call_next(request)
        try:
            request.state.auth_context = await self._authenticate(request)
        except AuthError as exc:
            payload = {"code": exc.code, "message": exc.message}
            if exc.details is not None:
                payload["details"] = exc.details
            return JSONResponse(status_code=exc.status_code, content=payload)
        return await call_next(request)
