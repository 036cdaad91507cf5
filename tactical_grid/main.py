"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from tactical_grid import __version__
from tactical_grid.api.routes import grid
from tactical_grid.config import get_settings
from tactical_grid.middleware.error_handler import setup_error_handlers

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger("tactical_grid.requests")

app = FastAPI(
    title="Tactical Grid",
    description="Grid store, pathfinding and occupancy for tactical combat maps",
    version=__version__,
)


# Middleware to log all requests
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.debug(f"[REQUEST] {request.method} {request.url.path}")
    try:
        response = await call_next(request)
        logger.info(f"[RESPONSE] {request.method} {request.url.path} -> {response.status_code}")
        return response
    except Exception as e:
        logger.error(f"[REQUEST ERROR] {request.method} {request.url.path} -> {type(e).__name__}: {e}")
        raise

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",  # Vite
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_error_handlers(app, debug=settings.DEBUG)


@app.get("/")
async def root():
    """Service banner."""
    return {"status": "online", "service": "Tactical Grid", "version": __version__}


@app.get("/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "debug_mode": settings.DEBUG,
        "cell_world_size": settings.CELL_WORLD_SIZE,
        "max_stride_actions": settings.MAX_STRIDE_ACTIONS
    }


# Routes
app.include_router(grid.router, prefix="/api/grids", tags=["grids"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("tactical_grid.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
