import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import get_settings
from core.errors import (
    ContextAcquisitionFailure,
    InvalidInput,
    PriceLookupError,
)
from core.models import SearchQuery, utc_timestamp
from core.service import PriceSearchService

from .models import ErrorResponse, HealthResponse, PriceSearchResponse

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("price-api")

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Price statistics for takealot.com search results",
    version=settings.PROJECT_VERSION,
)

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache()
def get_price_service() -> PriceSearchService:
    """Return the shared service; sessions are still created per request."""
    return PriceSearchService.from_settings(settings)


@app.get("/", tags=["General"])
async def root():
    """Root endpoint providing API information."""
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.PROJECT_VERSION,
        "endpoints": {
            "GET /": "This information",
            "GET /api/prices?search=<term>": "Prices and statistics for a search term",
            "GET /health": "Check that a headless browser can be launched",
        },
    }


# Plain def: the browser session uses Playwright's sync API, so the handler
# runs in the threadpool instead of on the event loop.
@app.get(
    "/api/prices",
    response_model=PriceSearchResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Prices"],
)
def get_prices(
    search: Optional[str] = Query(None, description="Search term, e.g. 'phone'"),
    debug: bool = Query(False, description="Include extraction diagnostics"),
    service: PriceSearchService = Depends(get_price_service),
):
    """Scrape the search results page for a term and summarize its prices."""
    query = SearchQuery(term=search or "", debug=debug)
    result = service.search(query)
    return result.to_dict(debug=debug)


@app.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": ErrorResponse}},
    tags=["General"],
)
def health(service: PriceSearchService = Depends(get_price_service)):
    """Launch and close a browser to verify the rendering backend."""
    try:
        service.check_backend()
    except ContextAcquisitionFailure as e:
        return _error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE, "Browser backend unavailable", str(e)
        )
    return HealthResponse(status="ok", timestamp=utc_timestamp())


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(),
    )


# Error handlers
@app.exception_handler(InvalidInput)
async def invalid_input_handler(_request, exc):
    return _error_response(status.HTTP_400_BAD_REQUEST, exc.label, str(exc))


@app.exception_handler(PriceLookupError)
async def lookup_error_handler(_request, exc):
    logger.error("Error processing request: %s", str(exc))
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.label, str(exc))


@app.exception_handler(Exception)
async def general_exception_handler(_request, exc):
    logger.exception("Unexpected error processing request")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process request", str(exc)
    )


# Run with: uvicorn api.main:app --port 3000
if __name__ == "__main__":
    import uvicorn

    logger.info("%s is running on port %s", settings.PROJECT_NAME, settings.PORT)
    uvicorn.run("api.main:app", host=settings.HOST, port=settings.PORT)
