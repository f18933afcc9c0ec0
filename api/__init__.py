"""REST API module for the MedX supply-chain service.

This module provides HTTP endpoints for:
- Registering and managing parties (users)
- Managing the product catalog
- Managing per-party inventory
- Placing orders and moving them through their workflow
- Authentication and session management
- System health monitoring
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from database import init_db, close as db_close
from chain import bridge
from .errors import error_response

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    logger.info("Initializing API...")
    await init_db()
    logger.info(f"Chain bridge {'enabled at ' + bridge.url if bridge.enabled else 'disabled'}")

    yield

    # Shutdown
    logger.info("Shutting down API...")
    await db_close()

# Create FastAPI app
app = FastAPI(
    title="MedX Supply Chain API",
    description="REST API for tracking pharmaceutical goods through the supply chain",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Malformed bodies and query strings get the same error shape as domain errors
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "Invalid request: " + "; ".join(problems)
    logger.warning(f"Request rejected (validation): {message}")
    error = error_response("validation", message)
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})

# Import and include all routers
from .parties import router as parties_router
from .products import router as products_router
from .inventory import router as inventory_router
from .orders import router as orders_router
from .auth import router as auth_router
from .system import router as system_router

# Include all routers
app.include_router(parties_router)
app.include_router(products_router)
app.include_router(inventory_router)
app.include_router(orders_router)
app.include_router(auth_router)
app.include_router(system_router)
