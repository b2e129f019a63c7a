from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.orm import Session
from sqlalchemy import text, inspect
from datetime import datetime
import logging, traceback, uvicorn

# Import our modules
from app.core.config import API_PREFIX, UPLOAD_DIR, is_production, load_audit_policy
from app.core.database import get_db, engine, Base, SessionLocal
from app.core.errors import PortfolioError
from app.metrics import init_metrics_zero
from app.middleware.activity_logger import ActivityLogMiddleware
from app.utils.actions import get_action_table, route_keys
from app.api import auth, student, admin, public
from app.models import ActivityLog, Project, User  # noqa: F401  registers tables on Base

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
log = logging.getLogger("portfolio")

AUDIT_POLICY = load_audit_policy()
ACTION_TABLE = get_action_table()

# FastAPI app
app = FastAPI(
    title="Student Portfolio API",
    description="Student portfolio submission and moderation API",
    version="1.0.0"
)
app.state.audit_policy = AUDIT_POLICY

app.add_middleware(
    ActivityLogMiddleware,
    policy=AUDIT_POLICY,
    session_factory=SessionLocal,
    table=ACTION_TABLE,
    prefix=API_PREFIX,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], allow_credentials=True,
    allow_methods=["*"], allow_headers=["*"],
)

UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")

# (router, path under API_PREFIX, tag)
API_ROUTERS = [
    (auth.router, "", "auth"),
    (student.router, "/student", "student"),
    (admin.router, "/admin", "admin"),
    (public.router, "/public", "public"),
]
for router, sub, tag in API_ROUTERS:
    app.include_router(router, prefix=f"{API_PREFIX}{sub}", tags=[tag])

# every API route must be classified (or explicitly ignored) by the activity table
API_ROUTES = [key for router, sub, _ in API_ROUTERS for key in route_keys(router.routes, sub)]
ACTION_TABLE.validate(API_ROUTES)

init_metrics_zero()

@app.on_event("startup")
def on_startup():
    log.info("[startup] database: %s (%s)", engine.url.render_as_string(hide_password=True), engine.name)
    Base.metadata.create_all(bind=engine)
    log.info("[startup] tables: %s", inspect(engine).get_table_names())
    log.info("[startup] activity table: %d routes, skip paths %s", len(ACTION_TABLE.rules), AUDIT_POLICY.skip_paths)

# -------------------------- error envelope --------------------------

def _envelope(status_code: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=body)

@app.exception_handler(PortfolioError)
async def portfolio_error_handler(request: Request, exc: PortfolioError):
    return _envelope(exc.status_code, exc.message, errors=exc.errors)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for e in exc.errors():
        loc = [str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path", "form")]
        msg = e.get("msg", "Invalid value")
        errors.append({"field": ".".join(loc), "message": msg.removeprefix("Value error, ")})
    return _envelope(400, "Validation failed", errors=errors)

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return _envelope(404, f"Route {request.method} {request.url.path} not found")
    return _envelope(exc.status_code, str(exc.detail))

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("[error] %s %s", request.method, request.url.path)
    details = None if is_production() else traceback.format_exc()
    return _envelope(500, "Internal server error", error=str(exc), details=details)

# -------------------------- ops --------------------------

@app.get("/health", include_in_schema=False)
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected", "timestamp": datetime.now()}
    except Exception as e:
        log.error("[health] database check failed: %s", e)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "disconnected", "error": str(e)},
        )

@app.get("/metrics", include_in_schema=False)
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
