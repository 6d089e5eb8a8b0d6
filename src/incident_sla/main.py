"""
Incident SLA Service - Main Application
=========================================

SLA engine for incident tickets.

Modules:
- SLA Monitoring: deadlines, milestones, breach and near-breach sweeps
- Escalation: organization-scoped escalation to another responder

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, notifiers, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from incident_sla.config import settings
from incident_sla.core import ApplicationException

# Infrastructure
from incident_sla.infrastructure.database import (
    init_database, close_database, create_tables, get_session_maker
)

# SLA Module
from incident_sla.sla.application import BreachScanner, NearBreachNotifier
from incident_sla.sla.infrastructure import (
    SQLAlchemyTicketRepository, YAMLConfigProvider, SLAScheduler, SlackNotifier, build_notifier
)

# Module Routers
from incident_sla.sla.interfaces import sla_router
from incident_sla.escalation.interfaces import escalation_router

# Middleware and logging
from incident_sla.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler
)
from incident_sla.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


def build_scheduler(notifier) -> SLAScheduler:
    """Register the breach scan and near-breach sweep as recurring jobs."""
    ticket_repo = SQLAlchemyTicketRepository(get_session_maker())
    scanner = BreachScanner(ticket_repo, notifier)
    near_breach = NearBreachNotifier(ticket_repo, notifier)

    scheduler = SLAScheduler()
    scheduler.add_job("breach_scan", scanner.run, settings.breach_scan_interval)
    scheduler.add_job("near_breach_sweep", near_breach.run, settings.near_breach_scan_interval)
    return scheduler


def init_app_state(app: FastAPI) -> None:
    """Load the SLA rule table and build the notifier the routes depend on."""
    app.state.sla_config = YAMLConfigProvider(settings.sla_config_path)
    app.state.notifier = build_notifier()


def configure_serverless(app: FastAPI) -> None:
    """
    Startup for hosts that run the app without lifespan events.

    Sweeps are triggered externally there, so no scheduler is started.
    """
    setup_logging(settings.log_level, settings.environment)
    init_database()
    init_app_state(app)
    app.state.scheduler = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load SLA rule table (once; never reloaded)
    4. Build notifier
    5. Start sweep scheduler

    SHUTDOWN:
    1. Stop scheduler, cancelling in-flight sweeps
    2. Close notifier
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Incident SLA Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()

    # Development convenience; production schemas are migrated separately
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    init_app_state(app)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_scheduler(app.state.notifier)
        await scheduler.start()
    else:
        logger.info("SLA scheduler disabled")
    app.state.scheduler = scheduler

    logger.info("Incident SLA Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Incident SLA Service")

    if scheduler:
        await scheduler.stop()

    if isinstance(app.state.notifier, SlackNotifier):
        await app.state.notifier.close()

    await close_database()

    logger.info("Incident SLA Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Incident SLA API",
    description="""
    ## Incident SLA Engine

    Tracks acknowledgment and resolution deadlines for incident tickets,
    flags each missed deadline exactly once and supports escalation within
    the ticket's organization.

    **SLA Windows (minutes, acknowledgment / resolution):**

    | Priority      | Ack | Resolve |
    |---------------|-----|---------|
    | critical      | 15  | 240     |
    | high          | 30  | 480     |
    | medium        | 60  | 1440    |
    | low           | 120 | 2880    |
    | informational | 240 | 5760    |
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(sla_router)
app.include_router(escalation_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint for load balancers and orchestrators."""
    scheduler = getattr(request.app.state, "scheduler", None)
    sla_config = getattr(request.app.state, "sla_config", None)

    checks = {
        "sla_config": f"loaded ({len(sla_config.get_rule_table())} tiers)" if sla_config else "default",
        "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "notifier": type(getattr(request.app.state, "notifier", None)).__name__,
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Incident SLA Service",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "sla": {
                "prefix": "/sla",
                "endpoints": [
                    "POST /sla/tickets - Open ticket",
                    "GET /sla/tickets/{id} - Ticket SLA status",
                    "POST /sla/tickets/{id}/acknowledge|resolve|close - Record milestone",
                    "POST /sla/scans/breach - Run breach scan",
                    "POST /sla/scans/near-breach - Run near-breach sweep",
                    "GET /sla/compliance - Compliance rate"
                ]
            },
            "escalation": {
                "prefix": "/escalations",
                "endpoints": [
                    "POST /escalations/tickets/{id} - Escalate ticket",
                    "GET /escalations/tickets/{id} - Escalation history"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "incident_sla.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
