from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.fees.router import router as fees_router
from app.api.v1.students.router import router as students_router
from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import init_models


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        await init_models()
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Institute Fee Ledger Backend", lifespan=lifespan)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(students_router)
    app.include_router(fees_router)

    return app


app = create_app()
