# =============================================================================
# FastAPI Main Application
# =============================================================================
# Entry point for the job status webapp.
# =============================================================================

from fastapi import FastAPI

from app.routers import health, jobs

# Application instance
app = FastAPI(
    title="Batch Ingestion Job API",
    description="Query and cancel batch ingestion jobs.",
    version="0.1.0",
)

# Include routers
app.include_router(health.router)
app.include_router(jobs.router)
