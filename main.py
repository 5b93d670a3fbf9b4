"""
Entrypoint for the Upload Binding Engine HTTP adapter.
Wires the FastAPI application together and registers the attachment routes.
"""

from __future__ import annotations

import argparse
import logging

from fastapi import FastAPI

from attachments_router import router as attachments_router
from config import config
from logging_utils import configure_logging

configure_logging(config.LOG_LEVEL, use_color=config.LOG_COLOR)
logger = logging.getLogger(__name__)

app = FastAPI(title="Upload Binding Engine", version="1.0.0")
app.include_router(attachments_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    parser = argparse.ArgumentParser(description="Upload Binding Engine")
    parser.add_argument("--host", default=config.APP_HOST, help="Interface to bind")
    parser.add_argument("--port", type=int, default=config.APP_PORT, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", default=config.APP_RELOAD, help="Reload on code changes")
    args = parser.parse_args()

    logger.info("Starting with uvicorn on %s:%d", args.host, args.port)
    uvicorn.run("main:app", host=args.host, port=args.port, reload=args.reload)
