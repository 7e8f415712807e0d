"""
FastAPI application entry point.

Thin HTTP surface over the what-if generation engine and template registry.
Optional API key authentication (see dependencies.auth).
"""

from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI

from src import __version__
from .dependencies.auth import verify_api_key
from .routers import simulator, templates
from .services.simulator_service import shutdown_simulator_service

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    The simulator service is created lazily on first use; shutdown releases
    the external backend worker threads and drops the service.
    """
    yield

    shutdown_simulator_service()

# Tag metadata for Swagger UI
tags_metadata = [
    {
        "name": "simulator",
        "description": "What-if generation - ranked prompts from story parameters and branch suggestions for story nodes",
    },
    {
        "name": "templates",
        "description": "Template registry - listing, statistics, recommendations and pruning of learned templates",
    },
]

app = FastAPI(
    title="What-if Story Simulator API",
    lifespan=lifespan,
    description="""
## What-if Story Simulator API

Generates short "What if ...?" prompts and branch suggestions for interactive fiction.

### Authentication
When `API_AUTH_ENABLED=true`, all endpoints except `/health` require an `X-API-Key`
header matching the `API_KEY` environment variable.

### Features
- **Prompts**: rule-based and creative candidates, ranked and diversity-filtered
- **Branches**: continuations for an existing story node, sized by branch density
- **Feedback**: accept/edit/reject feedback tunes template effectiveness
- **Templates**: inspect, extend and prune the template registry

### Usage
```bash
uvicorn src.api.main:app --host 127.0.0.1 --port 8000

curl -X POST http://localhost:8000/simulator/prompts \\
  -H "Content-Type: application/json" \\
  -d '{"parameters": {"genre": "mystery", "event": "a letter arrives", "mode": "logical"}, "count": 3}'
```
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=tags_metadata,
)


# Health check - NO authentication (operational endpoint)
@app.get("/health")
async def health_check():
    """Health check endpoint. Not authenticated."""
    return {"status": "ok", "version": __version__}


auth_dependency = [Depends(verify_api_key)]

app.include_router(
    simulator.router, prefix="/simulator", tags=["simulator"], dependencies=auth_dependency
)
app.include_router(
    templates.router, prefix="/templates", tags=["templates"], dependencies=auth_dependency
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
