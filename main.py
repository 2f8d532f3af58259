"""
Invoice Tracker - Main Application
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from invoice_tracker.config import Settings, get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Import after env loaded
from invoice_tracker.api.errors import register_exception_handlers
from invoice_tracker.api.routes import router
from invoice_tracker.api.documents import router as documents_router
from invoice_tracker.services import build_services
from invoice_tracker.storage import Storage, build_storage


def create_app(storage: Optional[Storage] = None, app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application around a storage backend.

    With no `storage` the backend named by STORAGE_BACKEND is created at
    startup and closed at shutdown; a passed-in backend is used as-is and
    left open.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler"""
        # Startup
        logger.info("=" * 60)
        logger.info("🚀 Invoice Tracker Starting...")
        logger.info("=" * 60)

        owned = getattr(app.state, "services", None) is None
        if owned:
            app.state.services = build_services(build_storage(app_settings), app_settings)
            logger.info("✅ Storage initialized")

        mode = "strict" if app_settings.strict_transitions else "permissive"
        logger.info(f"✅ Status transitions: {mode}, CSV quoting: {app_settings.csv_quoting}")
        logger.info("✅ Application ready")
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("Shutting down...")
        if owned:
            app.state.services.storage.close()

    app = FastAPI(
        title="Invoice Tracker",
        description="""
    ## Vendor invoice workflow

    Upload → data entry → review → (admin review) → approval → CSV export.

    ### Key Features:
    - **Status machine**: every status change is attributed and audited
    - **VIN lookup**: wholesale, retail, sold and current-account sources, first match wins
    - **GL codes**: inventory vehicles book to the inventory code automatically
    - **Daily export**: approved invoices to CSV, then finalized
    """,
        version="1.0.0",
        lifespan=lifespan
    )

    if storage is not None:
        app.state.services = build_services(storage, app_settings)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include API routes
    app.include_router(router, prefix="/api", tags=["Invoices"])
    app.include_router(documents_router, prefix="/api", tags=["Documents"])

    @app.get("/", response_class=HTMLResponse)
    async def root():
        """Root endpoint with basic endpoint list"""
        return """
    <!DOCTYPE html>
    <html>
    <head>
        <title>Invoice Tracker</title>
        <style>
            body { font-family: Arial, sans-serif; max-width: 1000px; margin: 0 auto; padding: 20px; background: #f5f5f5; }
            .card { background: white; padding: 20px; margin: 10px 0; border-radius: 8px; }
            .endpoint { background: #e8f4f8; padding: 8px; margin: 4px 0; border-radius: 4px; font-family: monospace; }
        </style>
    </head>
    <body>
        <h1>🧾 Invoice Tracker</h1>
        <div class="card">
            <h2>🔗 API Endpoints</h2>
            <div class="endpoint">GET /api/invoices?status=&vendorName=&invoiceNumber=&vin=&startDate=&endDate=</div>
            <div class="endpoint">POST /api/invoices</div>
            <div class="endpoint">PATCH /api/invoices/{id}/status</div>
            <div class="endpoint">PATCH /api/invoices/{id}</div>
            <div class="endpoint">GET /api/vin-lookup/{vin}</div>
            <div class="endpoint">POST /api/export/csv</div>
            <div class="endpoint">GET /api/vendors?search=&active=</div>
            <div class="endpoint">POST /api/vendors/import</div>
            <p><a href="/docs">📖 API Docs</a></p>
        </div>
    </body>
    </html>
    """

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "invoice-tracker"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    print("\n" + "=" * 60)
    print("🌐 Open in browser: http://localhost:8000")
    print("📖 API Docs: http://localhost:8000/docs")
    print("=" * 60 + "\n")
    uvicorn.run(app, host="127.0.0.1", port=8000)
