import json
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .availability.routes import router as availability_router
from .engine.webhooks import router as ghl_events_router
from .intake.routes import router as intake_router
from .ops.routes import OpsUnauthorized, router as ops_router

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="ERentals Intake", version="0.3.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(availability_router)
app.include_router(intake_router)
app.include_router(ops_router)
app.include_router(ghl_events_router)


@app.exception_handler(OpsUnauthorized)
async def ops_unauthorized_handler(request: Request, exc: OpsUnauthorized) -> JSONResponse:
    return JSONResponse(status_code=401, content={"ok": False, "error": "Unauthorized", "trace_id": exc.trace_id})


@app.on_event("startup")
async def _startup():
    logger.info(json.dumps({
        "event": "startup",
        "service": settings.service_name,
        "env": settings.env,
        "ghl_configured": settings.ghl_configured,
        "pipeline_configured": settings.pipeline_configured,
    }))
    if not settings.ops_secured:
        logger.warning(json.dumps({"event": "ops_open_mode", "detail": "OPS_SECRET not set; /api/ops/* is unauthenticated"}))


@app.get("/health")
async def health():
    return {"ok": True, "service": settings.service_name, "env": settings.env}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.env == "local",
        log_level=settings.log_level.lower(),
    )
