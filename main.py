import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

import auth_routes
import event_routes
import host_routes
from database import get_client, ensure_indexes
from errors import register_exception_handlers
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.database_url and settings.database_name:
        ensure_indexes(get_client(settings.database_url)[settings.database_name])
        logger.info("Indexes ensured on %s", settings.database_name)
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; database routes will fail")
    yield


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Labbe Events API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_exception_handlers(app)

    app.include_router(auth_routes.router)
    app.include_router(host_routes.router)
    app.include_router(event_routes.router)

    @app.get("/")
    def read_root():
        return {"message": "Labbe Events API running"}

    @app.get("/test")
    def test_database(settings: Settings = Depends(get_settings)):
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
            "database_name": settings.database_name or "❌ Not Set",
            "connection_status": "Not Connected",
            "collections": [],
        }
        if not settings.database_url or not settings.database_name:
            return response
        try:
            db = get_client(settings.database_url)[settings.database_name]
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected"
            response["connection_status"] = "Connected"
        except Exception as e:
            response["database"] = f"⚠️ Error: {str(e)[:80]}"
        return response

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
