# paypals/main.py
# FastAPI entry point for PayPals.
#  • Routers are mounted under /api (auth routes sit directly on /api).
#  • The daily invitation cleanup loop starts only with INVITATION_CLEANUP_ENABLED=1.

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paypals import config
from paypals.db import engine  # noqa: F401  (engine/pool initialisation)
from paypals.utils import ratelimit

from paypals.routers.auth import router as auth_router
from paypals.routers.users import router as users_router
from paypals.routers.circles import router as circles_router
from paypals.routers.circle_members import router as circle_members_router
from paypals.routers.invitations import router as invitations_router
from paypals.routers.external_participants import router as external_participants_router
from paypals.routers.transactions import router as transactions_router
from paypals.routers.paynow import router as paynow_router
from paypals.routers.notifications import router as notifications_router
from paypals.routers.maps import router as maps_router
from paypals.routers.cleanup import router as cleanup_router
from paypals.routers.dashboard import router as dashboard_router

from paypals.jobs.invitation_cleanup import start_invitation_cleanup_loop, stop_invitation_cleanup_loop

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("paypals")

app = FastAPI(
    title="PayPals Backend",
    description="Backend for PayPals: circles, shared transactions, invitations, PayNow QR and notifications.",
)


# --- Security headers ---
# no CSP on the docs pages (Swagger UI assets come from a CDN)
DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app
        self.headers = [
            (b"X-Content-Type-Options", b"nosniff"),
            (b"X-Frame-Options", b"DENY"),
            (b"Referrer-Policy", b"no-referrer"),
            (b"Cross-Origin-Opener-Policy", b"same-origin"),
        ]
        if config.IS_PRODUCTION:
            self.headers.append((b"Strict-Transport-Security", b"max-age=15552000; includeSubDomains"))
        connect_src = " ".join(["'self'", *config.CORS_ORIGINS])
        self.csp = (
            b"Content-Security-Policy",
            (
                "default-src 'self'; script-src 'self'; style-src 'self' 'unsafe-inline'; "
                f"img-src 'self' data:; connect-src {connect_src}; font-src 'self'; "
                "object-src 'none'; media-src 'self'; frame-src 'none'"
            ).encode("latin-1"),
        )

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        headers = list(self.headers)
        if not scope["path"].startswith(DOCS_PATHS):
            headers.append(self.csp)

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend(headers)
            await send(message)

        await self.app(scope, receive, send_with_headers)


@app.middleware("http")
async def role_rate_limit(request: Request, call_next):
    if request.method != "OPTIONS":
        retry_after = ratelimit.hit_request_quota(request)
        if retry_after is not None:
            return JSONResponse(
                status_code=429,
                content={"detail": ratelimit.TOO_MANY_REQUESTS},
                headers={"Retry-After": str(retry_after)},
            )
    return await call_next(request)


app.add_middleware(SecurityHeadersMiddleware)

# --- CORS (cookie session, so credentials are allowed) ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    log.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# --- Routers ---
# external_participants goes before transactions: /external/{token} must not hit /{transaction_id}
app.include_router(auth_router,                  prefix="/api",                       tags=["Auth"])
app.include_router(users_router,                 prefix="/api/users",                 tags=["Users"])
app.include_router(circles_router,               prefix="/api/circles",               tags=["Circles"])
app.include_router(circle_members_router,        prefix="/api/circles",               tags=["Circle members"])
app.include_router(invitations_router,           prefix="/api/invitations",           tags=["Invitations"])
app.include_router(external_participants_router, prefix="/api/transactions/external", tags=["External participants"])
app.include_router(transactions_router,          prefix="/api/transactions",          tags=["Transactions"])
app.include_router(paynow_router,                prefix="/api/paynow",                tags=["PayNow"])
app.include_router(notifications_router,         prefix="/api/notifications",         tags=["Notifications"])
app.include_router(maps_router,                  prefix="/api/maps",                  tags=["Maps"])
app.include_router(cleanup_router,               prefix="/api/cleanup",               tags=["Cleanup"])
app.include_router(dashboard_router,             prefix="/api/dashboard",             tags=["Dashboard"])


@app.get("/")
def root():
    """Simple healthcheck."""
    return {"message": "PayPals backend is running!", "docs": "/docs"}


@app.on_event("startup")
async def _startup_jobs():
    if config.INVITATION_CLEANUP_ENABLED:
        start_invitation_cleanup_loop()


@app.on_event("shutdown")
async def _shutdown_jobs():
    stop_invitation_cleanup_loop()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("paypals.main:app", host="0.0.0.0", port=8000, reload=False)
