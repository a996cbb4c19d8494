"""
Tracksync Worker API - Main FastAPI Application.

Runs tracking reconciliation passes when Cloud Scheduler calls it.
"""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from tracksync import config
from tracksync.utils.logging import setup_logging

# Load environment variables
load_dotenv()

# Configure logging early
setup_logging("tracksync-worker")


def _init_database():
    """Initialize database connection if configured."""
    from tracksync.db import DatabaseConnection

    if not (os.getenv("INSTANCE_CONNECTION_NAME") or os.getenv("DATABASE_URL")):
        print("   Database: Not configured (INSTANCE_CONNECTION_NAME not set)")
        return False

    try:
        DatabaseConnection.initialize()
        print("   Database: Connected")
        return True
    except Exception as e:
        print(f"   Database: Failed to connect - {e}")
        return False


def build_reconciliation_job():
    """Wire the process-scoped carrier client, publisher and job."""
    from tracksync.carrier import CarrierClient, CredentialBroker
    from tracksync.config import CorreiosCredentials
    from tracksync.jobs import ReconciliationJob
    from tracksync.notifications import EmailEventPublisher

    broker = CredentialBroker(CorreiosCredentials.from_env())
    carrier = CarrierClient(broker)
    return ReconciliationJob(carrier=carrier, publisher=EmailEventPublisher())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    print("🔨 Starting Tracksync Worker Service...")
    print(f"   Environment: {os.getenv('GOOGLE_CLOUD_PROJECT', 'local')}")
    print(f"   Correios API: {config.CORREIOS_API_BASE_URL}")

    db_initialized = _init_database()
    app.state.reconciliation_job = build_reconciliation_job()

    yield

    # Shutdown
    if db_initialized:
        from tracksync.db import DatabaseConnection

        DatabaseConnection.close()
        print("   Database: Connection closed")

    print("👋 Shutting down Tracksync Worker Service...")


# Create FastAPI application
app = FastAPI(
    title="Tracksync Worker API",
    description="Background worker that reconciles shipment tracking with Correios",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/")
async def root():
    """Root endpoint - service information."""
    return {
        "service": "Tracksync Worker API",
        "version": "0.1.0",
        "status": "operational",
        "description": "Background worker for tracking reconciliation",
    }


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Cloud Run.

    Returns:
        dict: Health status
    """
    return {
        "status": "healthy",
        "service": "tracksync-worker",
        "environment": os.getenv("GOOGLE_CLOUD_PROJECT", "local"),
    }


# Import and include task routers
from tracksync.worker.routes import tasks

app.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
