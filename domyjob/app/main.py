from fastapi import FastAPI
from dotenv import load_dotenv
load_dotenv(dotenv_path="domyjob/.env", override=False)
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware
from .routers import auth, contexts, tasks, conversations, ai, learning, email, screenshot
from .db.database import ensure_schema
from .core.config import get_settings
from .core.logging import init_logging
import logging, time, uuid
from fastapi import Request
from fastapi.responses import JSONResponse

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_logging()
    ensure_schema()
    if not get_settings().encryption_key:
        logging.getLogger(__name__).warning("encryption_key_missing")
    yield

app = FastAPI(title="DoMyJob", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    SessionMiddleware,
    secret_key=get_settings().session_secret,
    session_cookie="domyjob_session",
    same_site="lax",
)

app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(contexts.router, prefix="/api", tags=["contexts"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(conversations.router, prefix="/api/conversations", tags=["conversations"])
app.include_router(ai.router, prefix="/api/ai", tags=["ai"])
app.include_router(learning.router, prefix="/api", tags=["learning"])
app.include_router(email.router, prefix="/api/email", tags=["email"])
app.include_router(screenshot.router, prefix="/api/screenshot", tags=["screenshot"])


@app.get("/health")
async def health():
    settings = get_settings()
    return {"status": "ok", "llm_configured": bool(settings.openai_api_key), "model": settings.openai_model}

@app.middleware("http")
async def timing_logger(request: Request, call_next):
    trace_id = request.headers.get("X-Trace-Id", str(uuid.uuid4())[:8])
    start = time.perf_counter()
    try:
        response = await call_next(request)
        duration = (time.perf_counter()-start)*1000
        logging.getLogger().info(
            f"{request.method} {request.url.path} {response.status_code} {duration:.1f}ms",
            extra={"trace_id": trace_id, "method": request.method, "path": request.url.path, "status": response.status_code, "duration_ms": round(duration,1)}
        )
        response.headers['X-Trace-Id'] = trace_id
        return response
    except Exception as exc:
        duration = (time.perf_counter()-start)*1000
        logging.getLogger().error(
            f"ERR {request.method} {request.url.path} {type(exc).__name__}",
            exc_info=exc,
            extra={"trace_id": trace_id, "method": request.method, "path": request.url.path, "status": 500, "duration_ms": round(duration,1), "error_type": type(exc).__name__}
        )
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error", "trace_id": trace_id})
