# main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from parish_analytics.config import settings

# Report routers
from parish_analytics.reports.routes import router as reports_router
from parish_analytics.giving.routes import router as giving_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
log = logging.getLogger("parish_analytics")

app = FastAPI(title="Parish Analytics", version="1.0.0")


# Healthcheck
@app.get("/healthz")
def healthcheck():
    return {"ok": True}


# Anything not raised as an HTTPException is a failed report
@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    log.error("[reports] %s %s failed", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Failed to generate report"})


# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(reports_router)
app.include_router(giving_router)
