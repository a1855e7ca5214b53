from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from datetime import datetime
import logging

# Load environment variables as early as possible
load_dotenv()

from .core.config import settings
from .database import engine, create_db_and_tables
from .dependencies import build_analysis_proxy
from .middleware import SecurityMiddleware, LoggingMiddleware, ErrorHandlingMiddleware, RequestSizeLimitMiddleware
from .exceptions import http_exception_handler
from .application.services.collection_analysis_service import CollectionAnalysisService
from .application.services.collection_store import CollectionStore
from .infrastructure.persistence.sqlalchemy.repositories.collection_repository_sql import SqlCollectionPersistence
from .routers import collection_router, proxy_router
from .schemas.common.common import HealthResponse

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


def init_state(app: FastAPI) -> None:
    """Build the store, proxy and analysis service unless they were injected already."""
    if not hasattr(app.state, "collection_store"):
        try:
            create_db_and_tables()
        except Exception:
            # Without its tables the collection cannot be loaded
            logger.exception("Database initialization failed")
            raise
        logger.info("Database initialized successfully")
        app.state.collection_store = CollectionStore.load(SqlCollectionPersistence(engine))
    if not hasattr(app.state, "analysis_proxy"):
        app.state.analysis_proxy = build_analysis_proxy()
    if not hasattr(app.state, "analysis_service"):
        app.state.analysis_service = CollectionAnalysisService(
            store=app.state.collection_store,
            proxy=app.state.analysis_proxy,
        )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Routing rejects unknown verbs before the proxy runs; answer them the proxy's way
    if exc.status_code == 405 and request.url.path == proxy_router.ANALYZE_PATH:
        return await proxy_router.method_not_allowed(request)
    return await http_exception_handler(request, exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME}...")
    init_state(app)
    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
    )

    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=settings.GZIP_MIN_SIZE)

    # The proxy sets its own CORS headers, including on the OPTIONS preflight
    app.include_router(proxy_router.router)
    app.include_router(collection_router.router)

    @app.get("/health", response_model=HealthResponse)
    def health_check():
        store = getattr(app.state, "collection_store", None)
        return HealthResponse(
            status="healthy" if store is not None else "starting",
            service=settings.APP_NAME,
            version=settings.APP_VERSION,
            timestamp=datetime.utcnow().isoformat(),
            collection={
                "bags": len(store.bags) if store else 0,
                "credentialConfigured": store.has_credential if store else False,
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=1,  # collection state lives in one process
        log_level=settings.LOG_LEVEL.lower()
    )
