from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recommendation_api.api.deps import build_providers
from recommendation_api.api.routes.recommendations import router as recommendations_router
from recommendation_api.api.routes.smart_playlists import router as smart_playlists_router
from recommendation_api.core.config import get_settings
from recommendation_api.middleware.observability import ObservabilityMiddleware

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create shared provider clients on startup and close their connection pools on shutdown."""
    app.state.providers = build_providers(settings)
    try:
        yield
    finally:
        await app.state.providers.aclose()


# Define OpenAPI tags for grouping
openapi_tags = [
    {"name": "Health", "description": "Service health and readiness."},
    {"name": "Recommendations", "description": "Similar, discovery and mood recommendations."},
    {"name": "Smart Playlists", "description": "Smart playlist rule evaluation."},
]

# Initialize FastAPI app with metadata for OpenAPI/Swagger
app = FastAPI(
    title="Music Recommendation API",
    description="Recommendation orchestration over the media server library and Last.fm.",
    version="1.0.0",
    contact={"name": "Backend Team"},
    license_info={"name": "Proprietary"},
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

# Apply CORS policy from configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if settings.CORS_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Conditionally enable observability middleware
if settings.OBS_ENABLED:
    app.add_middleware(ObservabilityMiddleware)


@app.get(
    "/",
    summary="Health Check",
    description="Health check endpoint for liveness checks.\n\nReturns a simple JSON indicating the service is healthy.",
    tags=["Health"],
    responses={200: {"description": "Service is healthy"}},
)
def health_check():
    """Root health endpoint.

    Returns:
    - JSON message confirming service health.
    """
    return {"message": "Healthy"}


# Mount all routers
app.include_router(recommendations_router)
app.include_router(smart_playlists_router)
