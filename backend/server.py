from fastapi import FastAPI, APIRouter
from starlette.middleware.cors import CORSMiddleware
import logging
from datetime import datetime, timezone

from utils import config
from utils.database import connect, ensure_indexes
from routers.auth import router as auth_router
from routers.schools import router as schools_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

API_TITLE = "UDISE School Records API"
API_VERSION = "1.0.0"


def create_app(database=None) -> FastAPI:
    """Build the API. ``database`` overrides the Motor connection (used by tests)."""
    app = FastAPI(title=API_TITLE, version=API_VERSION)

    client = None
    if database is None:
        client, database = connect(config.MONGO_URL, config.DB_NAME)
    app.state.db = database

    # Create a router with the /api prefix
    api_router = APIRouter(prefix="/api")

    @api_router.get("/")
    async def root():
        return {"message": API_TITLE, "version": API_VERSION}

    @api_router.get("/health")
    async def health_check():
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(api_router)
    app.include_router(auth_router, prefix="/api")
    app.include_router(schools_router, prefix="/api")

    # If credentials are not required, allow any origin. If you need credentials,
    # set explicit CORS_ORIGINS and CORS_ALLOW_CREDENTIALS=true.
    allow_origin_regex = None
    if not config.CORS_ALLOW_CREDENTIALS and "*" not in config.CORS_ORIGINS:
        allow_origin_regex = ".*"

    app.add_middleware(
        CORSMiddleware,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_origins=config.CORS_ORIGINS,
        allow_origin_regex=allow_origin_regex,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_event():
        await ensure_indexes(app.state.db)
        logger.info(f"{API_TITLE} ready")

    @app.on_event("shutdown")
    async def shutdown_db_client():
        if client is not None:
            client.close()

    return app


app = create_app()
