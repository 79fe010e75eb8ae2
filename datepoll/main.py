import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from datepoll.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log.level, logging.INFO),
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)

from datepoll.controllers.events import router as events_router
from datepoll.controllers.health import router as health_router
from datepoll.errors import register_exception_handlers
from datepoll.lifespan import lifespan
from datepoll.middleware import HTTPLogMiddleware

app = FastAPI(title="datepoll", version="1.0.0", lifespan=lifespan)
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins,
    allow_origin_regex=settings.cors.origins_regex or None,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

if settings.debug.request:
    logging.getLogger("datepoll.http").setLevel(logging.DEBUG)
    app.add_middleware(HTTPLogMiddleware)

app.include_router(health_router)
app.include_router(events_router, prefix="/api")

Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
