"""
FastAPI application factory.
Creates the app with CORS, wires the order store, orchestrator and settings
onto app.state, and registers the routers.
Swagger UI available at /docs, ReDoc at /redoc.
"""
import sys
import logging
from pathlib import Path
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Ensure src/ is on the path
_src_dir = str(Path(__file__).parent.parent)
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

logger = logging.getLogger("duplicate_guard.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic for the FastAPI app."""
    logger.info(f"[API] Duplicate Guard API started (order source: {app.state.order_source})")
    yield
    logger.info("[API] Shutting down API server")


def build_order_store(order_source=None):
    """
    Build the order store for the configured source.

    'shopify' talks to the live store, 'mock' serves the built-in sample orders.
    """
    import config
    from duplicate_guard.order_store import InMemoryOrderStore
    from duplicate_guard.shopify_connector import ShopifyConnector

    source = (order_source or config.ORDER_SOURCE).lower()
    if source == 'shopify':
        return ShopifyConnector(
            shop=config.SHOPIFY_SHOP,
            access_token=config.SHOPIFY_ACCESS_TOKEN,
        )
    if source == 'mock':
        return InMemoryOrderStore.with_sample_orders()
    raise ValueError(f"Unknown order source: {source}")


def create_app(order_store=None, settings=None, webhook_secret=None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        order_store: Object implementing OrderDirectory and OrderMutator.
            Built from config when omitted.
        settings: Initial duplicate detection Settings.
        webhook_secret: Shopify webhook signing secret (config value when omitted).
    """
    import config
    from api.settings_store import SettingsStore
    from duplicate_guard.scan_orchestrator import ScanOrchestrator

    app = FastAPI(
        title="Order Duplicate Guard API",
        description=(
            "Detects duplicate orders placed with the same phone number, "
            "tags, annotates and cancels them, and lets staff reopen "
            "orders that turn out to be legitimate."
        ),
        version=config.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.API_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if order_store is None:
        order_store = build_order_store()
        app.state.order_source = config.ORDER_SOURCE
    else:
        app.state.order_source = type(order_store).__name__

    app.state.order_store = order_store
    app.state.orchestrator = ScanOrchestrator(order_store, order_store)
    app.state.settings_store = SettingsStore(settings)
    app.state.webhook_secret = (
        config.SHOPIFY_WEBHOOK_SECRET if webhook_secret is None else webhook_secret
    )

    # Register routers
    from api.routes.duplicate_routes import router as duplicate_router
    from api.routes.health_routes import router as health_router

    app.include_router(duplicate_router, prefix="/api", tags=["Duplicates"])
    app.include_router(health_router, prefix="/health", tags=["Health"])

    @app.get("/", tags=["Root"])
    async def root():
        """API root."""
        return {
            "service": "Order Duplicate Guard API",
            "version": config.API_VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    return app
