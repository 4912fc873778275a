"""Main FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatdesk.config import CORS_ORIGINS
from chatdesk.database import engine, Base
from chatdesk.api.routes import router
from chatdesk.logging_config import configure_logging
from chatdesk.services.errors import WorkflowError
from chatdesk.services.notifications import WhatsAppClient
# Import models to register them with SQLAlchemy Base
from chatdesk.models.domain import Company, Department, User, Grievance, Appointment, StatusHistoryEntry
from chatdesk.models.audit import AuditEvent

configure_logging()
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.whatsapp_client = WhatsAppClient()
    logger.info("Chatdesk API started")
    try:
        yield
    finally:
        app.state.whatsapp_client.close()


# Create FastAPI app
app = FastAPI(
    title="Chatdesk - Record Workflow API",
    description="Status transitions and assignments for chatbot grievances and appointments.",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": f"Invalid request: {problems}"}
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"}
    )


# Include API routes
app.include_router(router, prefix="/api", tags=["Workflow"])


# Health check
@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "Chatdesk"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
