from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CORS_ORIGINS, LOG_LEVEL
from .database import create_tables
from .errors import register_error_handlers
from .logging_setup import setup_logging
from .routers import auth, calendar, reminders, tasks

setup_logging(LOG_LEVEL)

# Create FastAPI app
app = FastAPI(
    title="TaskX API",
    description="Personal task manager with Google Calendar sync and deadline reminders",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[tasks.SYNC_HEADER],
)

register_error_handlers(app)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(tasks.router, prefix="/api", tags=["tasks"])
app.include_router(calendar.router, prefix="/api", tags=["calendar"])
app.include_router(reminders.router, prefix="/api", tags=["reminders"])

# Create tables on startup
@app.on_event("startup")
def on_startup():
    create_tables()

@app.get("/")
def read_root():
    return {"message": "TaskX API"}

@app.get("/health")
def health_check():
    return {"status": "healthy"}
