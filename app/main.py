# /app/main.py

import logging
import os

# --- Core FastAPI Imports ---
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

# --- Application-specific Router Imports ---
from .routers import (
    users_router,
    programs_router,
    classrooms_router,
    evaluations_router,
    whatsapp_router,
)

# --- Startup Logic ---
from .db.database import init_db

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# --- Application Lifecycle Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    # This code runs ONCE when the application starts up.
    init_db()
    logger.info("Database ready")
    yield

# --- FastAPI Application Instance Creation ---
app = FastAPI(
    title="Classroom Management API",
    description="Programs, classrooms, evaluations and the classroom lifecycle, with WhatsApp group messaging.",
    version="1.0.0",
    lifespan=lifespan
)

# --- Middleware Configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- API Router Inclusion ---
app.include_router(users_router.router, prefix="/api/users", tags=["Users"])
app.include_router(programs_router.router, prefix="/api/programs", tags=["Programs"])
app.include_router(classrooms_router.router, prefix="/api/classrooms", tags=["Classrooms"])
app.include_router(evaluations_router.router, prefix="/api/evaluations", tags=["Evaluations"])
app.include_router(whatsapp_router.router, prefix="/api/whatsapp", tags=["WhatsApp"])

# --- Root / Health Check Endpoint ---
@app.get("/", tags=["Health Check"])
async def read_root():
    """A simple health check endpoint to confirm the API is online."""
    return {"status": "Classroom API is running!", "version": app.version}
