from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from server.api import chat_router, checkout_router, health_router
from server.core.config import get_settings
from server.core.logger import get_logger
from server.core.trace import new_trace_id, set_trace_id

config = get_settings()

logger = get_logger("server")
access = get_logger("access")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    logger.info("AI API running on http://%s:%s", config.host, config.port)
    yield


app = FastAPI(title="Popbar AI API", lifespan=_lifespan)


@app.middleware("http")
async def _trace_middleware(request: Request, call_next):
    tid = request.headers.get("X-Trace-Id") or new_trace_id()
    set_trace_id(tid)
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Trace-Id"] = tid
    access.info(
        "%s %s %s",
        request.method,
        request.url.path,
        response.status_code,
        extra={
            "fields": {
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            }
        },
    )
    return response


# Credentials cannot be combined with wildcard origins
_allow_credentials = config.cors_origins != ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(chat_router)
app.include_router(checkout_router)

