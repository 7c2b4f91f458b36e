"""Request guard: classifies every path and enforces login / admin role.

Public prefixes are checked first so the login and first-run setup flow
can never be locked out by a broader rule.
"""
import logging
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from . import config
from .sessions import get_session_by_id

logger = logging.getLogger(__name__)

PUBLIC_PREFIXES = (
    '/login',
    '/setup',
    '/api/auth/login',
    '/api/auth/logout',
    '/api/auth/set-password',
    '/api/auth/setup-admin',
    '/api/auth/setup-required',
    '/api/auth/password-needed',
    '/api/auth/session',
)
PUBLIC_EXACT = ('/', '/health')
ADMIN_PREFIXES = ('/admin', '/api/admin')
CORS_PREFIXES = ('/api/tasks', '/api/categories')

CORS_ALLOW_METHODS = ['GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS']
CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization']

PUBLIC = 'public'
ADMIN = 'admin'
PROTECTED_API = 'protected_api'
PROTECTED_PAGE = 'protected_page'


def _matches(path: str, prefixes) -> bool:
    for p in prefixes:
        if path == p or path.startswith(p + '/'):
            return True
    return False


def classify_path(path: str) -> str:
    if path in PUBLIC_EXACT or _matches(path, PUBLIC_PREFIXES):
        return PUBLIC
    if _matches(path, ADMIN_PREFIXES):
        return ADMIN
    if path.startswith('/api/'):
        return PROTECTED_API
    return PROTECTED_PAGE


def login_redirect(path: str) -> RedirectResponse:
    return RedirectResponse(url=f"/login?returnUrl={quote(path, safe='/')}", status_code=307)


class AuthGuardMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        request.state.user = None
        request.state.session_id = None
        kind = classify_path(path)
        if kind == PUBLIC:
            return await call_next(request)

        session_id = request.cookies.get(config.SESSION_COOKIE_NAME)
        active = None
        if session_id:
            async with request.app.state.db.session() as sess:
                active = await get_session_by_id(sess, session_id)
        is_api = path.startswith('/api/')

        if not active:
            logger.info('guard: unauthenticated %s %s', request.method, path)
            if is_api:
                return JSONResponse({'error': 'Authentication required'}, status_code=401)
            return login_redirect(path)

        request.state.user = active.user
        request.state.session_id = active.id

        if kind == ADMIN and not active.user.is_admin:
            logger.info('guard: user=%s denied admin path %s', active.user.username, path)
            if is_api:
                return JSONResponse({'error': 'Admin access required'}, status_code=403)
            return RedirectResponse(url='/?error=admin_required', status_code=307)

        return await call_next(request)


class ScopedCorsMiddleware:
    """Starlette's CORSMiddleware applied only below ``prefixes``.

    Installed outside the guard so preflight requests are answered without
    a session and error responses still carry the CORS headers.
    """

    def __init__(self, app: ASGIApp, prefixes=CORS_PREFIXES):
        self.app = app
        self.prefixes = tuple(prefixes)
        self.cors = CORSMiddleware(
            app,
            allow_origins=['*'],
            allow_methods=CORS_ALLOW_METHODS,
            allow_headers=CORS_ALLOW_HEADERS,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope['type'] == 'http' and _matches(scope['path'], self.prefixes):
            await self.cors(scope, receive, send)
            return
        await self.app(scope, receive, send)
