import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .admin_api import router as admin_router
from .auth_api import router as auth_router
from .categories_api import router as categories_router
from .db import Database
from .guard import AuthGuardMiddleware, ScopedCorsMiddleware
from .settings_api import router as settings_router
from .tasks_api import router as tasks_router

logger = logging.getLogger(__name__)
# Ensure INFO-level messages from the package appear on the server console when
# no handlers are configured.
_pkg_logger = logging.getLogger('taskwise')
if not _pkg_logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter('%(asctime)s %(levelname)s:%(name)s: %(message)s')
    handler.setFormatter(formatter)
    _pkg_logger.addHandler(handler)
_pkg_logger.setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = getattr(app.state, 'db', None)
    if db is None:
        db = Database(app.state.database_url)
        app.state.db = db
    await db.init()
    logger.info('starting server using DATABASE_URL=%s env=%s secure_cookies=%s', db.url, config.TASKWISE_ENV, config.COOKIE_SECURE)
    if not config.ANTHROPIC_API_KEY:
        logger.info('ANTHROPIC_API_KEY not set: AI enrichment only for users with their own key')
    try:
        yield
    finally:
        await db.dispose()
        logger.info('database disposed')


async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({'error': exc.detail}, status_code=exc.status_code, headers=getattr(exc, 'headers', None))


async def _validation_error(request: Request, exc: RequestValidationError):
    logger.info('validation error %s %s: %s', request.method, request.url.path, exc.errors())
    return JSONResponse({'error': 'Invalid request body'}, status_code=400)


async def _unexpected_error(request: Request, exc: Exception):
    logger.exception('unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse({'error': 'Internal server error'}, status_code=500)


def create_app(database_url: Optional[str] = None) -> FastAPI:
    app = FastAPI(title='TaskWise', lifespan=lifespan)
    app.state.database_url = database_url or config.DATABASE_URL

    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unexpected_error)

    app.include_router(auth_router)
    app.include_router(tasks_router)
    app.include_router(categories_router)
    app.include_router(settings_router)
    app.include_router(admin_router)

    # last added runs first: CORS answers preflight before the guard sees it
    app.add_middleware(AuthGuardMiddleware)
    app.add_middleware(ScopedCorsMiddleware)

    @app.middleware('http')
    async def timing_middleware(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info('timing %s %s %s %.1fms', request.method, request.url.path, response.status_code, duration_ms)
        return response

    @app.get('/')
    async def root():
        return {'name': 'taskwise', 'status': 'ok'}

    @app.get('/health')
    async def health():
        return {'ok': True}

    return app


app = create_app()


if __name__ == '__main__':
    import uvicorn
    uvicorn.run('taskwise.main:app', host='0.0.0.0', port=8000, reload=False)
