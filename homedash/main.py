# homedash/main.py
import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

# Only load .env outside a container
if os.getenv("K_SERVICE") is None:
    from dotenv import load_dotenv
    load_dotenv()

from .db import init_db
from .views import router as views_router
from .errors import build_error_notice
from .logger import logger

app = FastAPI(title="HomeDash")
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

# CORS from env (comma-separated). "*" allowed if you really want.
origins_env = os.getenv("ALLOWED_ORIGINS", "*")
origins = [o.strip() for o in origins_env.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(views_router, tags=["school-plan"])


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    notice = build_error_notice(exc, {"op": request.url.path or "/"})
    logger.error(f"[{notice.code}] {notice.debug} (ref={notice.support_id})")
    return JSONResponse(
        notice.to_dict(),
        status_code=500,
    )


@app.on_event("startup")
def on_startup():
    init_db()


@app.get("/healthz")
def healthz():
    return {"ok": True}
