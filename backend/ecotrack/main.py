# backend/ecotrack/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ecotrack.api.routes import routers
from ecotrack.core.exception_handlers import register_exception_handlers
from ecotrack.core.logging_config import get_loggers
from ecotrack.core.middleware import MaxBodySizeMiddleware
from ecotrack.core.settings import get_settings
from ecotrack.db.mongodb import close_client, get_db
from ecotrack.db.seed_indexes import ensure_indexes

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- startup ---
    logger, _ = get_loggers()
    report = await ensure_indexes(get_db())
    logger.info("%s started (%s), indexes: %s", settings.app_name, settings.environment, report)

    yield  # l'app tourne ici

    # --- shutdown ---
    close_client()
    logger.info("%s stopped", settings.app_name)


app = FastAPI(title=f"{settings.app_name} API", version=settings.api_version, lifespan=lifespan)
# ⚠️ Ordre des middlewares = ordre d’ajout.
# La limite de taille passe avant CORS.
app.add_middleware(
    MaxBodySizeMiddleware,
    max_body_size=settings.max_body_bytes,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for r in routers:
    app.include_router(r)
