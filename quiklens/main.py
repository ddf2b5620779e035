from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from quiklens.config import configure_logging
from quiklens.infrastructure.api.middlewares import add_default_middlewares, add_error_handlers
from quiklens.infrastructure.api.routes.processing_routes import router as processing_router
from quiklens.infrastructure.api.routes.session_routes import router as session_router
from quiklens.infrastructure.sessions.session_registry import SessionRegistry


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    app.state.session_registry.close_all()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="QuikLens Backend",
        version="0.1.0",
        lifespan=lifespan,
        description="""
        ## QuikLens Backend API

        Interactive photo editing with NumPy and Pillow: tone and color sliders, crop with
        aspect-ratio locking, named effects, and multi-step undo/redo.

        ### Features
        - **Image Processing**: Render an edit state (crop first, then adjustments) as PNG
        - **RAW Preview**: Browser-displayable previews of camera RAW files via exiftool
          and dcraw_emu
        - **Editing Sessions**: Server-side editor state with a zoom/pan viewport, crop
          handles, debounced slider previews and a bounded history
        - **Export**: Store the current result through Supabase Storage

        ### Authentication
        All endpoints (except root and health) require authentication via Bearer token
        in the Authorization header:
        ```
        Authorization: Bearer your-jwt-token
        ```

        ### Error Responses
        - **400 Bad Request**: Invalid request parameters, crop below the minimum size
        - **401 Unauthorized**: Missing or invalid authentication token
        - **404 Not Found**: Session does not exist or belongs to another user
        - **422 Unprocessable Entity**: The image could not be decoded
        - **502 Bad Gateway**: The processing service failed
        """,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    app.state.session_registry = SessionRegistry()
    add_default_middlewares(app)
    add_error_handlers(app)

    @app.get(
        "/",
        summary="API Root",
        description="Get basic information about the QuikLens API",
        response_description="API information including status and version",
    )
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "quiklens-backend", "version": app.version}

    @app.get(
        "/health",
        summary="Health Check",
        description="Check if the API service is running and healthy",
        response_description="Health status of the API service",
    )
    def health():
        """Check API health status."""
        return {"status": "healthy", "sessions": len(app.state.session_registry)}

    app.include_router(processing_router)
    app.include_router(session_router)
    return app


app = create_app()
