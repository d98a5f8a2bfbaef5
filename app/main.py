# app/main.py
import logging
import os

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.modules.router import router as modules_router
from core.config import settings, wire_services
from core.logging import get_logger

logger = get_logger(__name__)


def create_app(llm_client=None):
    app = FastAPI(title="Legal Document Intake")
    wire_services(app, llm_client)
    app.include_router(modules_router)

    # --- CORS ---
    origins = settings.CORS_ALLOWED_ORIGINS or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400,
    )

    @app.api_route("/healthz", methods=["GET", "HEAD"], include_in_schema=False)
    async def healthz():
        return JSONResponse({"status": "ok"})

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Starting Legal Document Intake API (model={settings.LLM_MODEL})")

    for route in app.routes:
        methods = getattr(route, "methods", None)
        if methods:
            logging.getLogger("router.map").debug("ROUTE %s %s", ",".join(sorted(methods)), route.path)

    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port)
