"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from product_service.api.categories import router as categories_router
from product_service.api.products import router as products_router
from product_service.config import settings
from product_service.exceptions import ProductServiceError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Product Catalog Service",
    description="Product CRUD, listing, search and stock adjustment for the storefront",
    version="0.1.0",
    debug=settings.debug,
)

# Include API routers
app.include_router(products_router)
app.include_router(categories_router)


@app.exception_handler(ProductServiceError)
async def product_service_error_handler(
    request: Request, exc: ProductServiceError
) -> JSONResponse:
    """Render catalog errors as ``{"error": message}`` with status 400."""
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": exc.message},
    )


def format_validation_error(exc: RequestValidationError) -> str:
    """Summarize the first request validation error in one line."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(
        str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")
    )
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures like every other client error."""
    message = format_validation_error(exc)
    logger.warning("%s %s rejected: %s", request.method, request.url.path, message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message},
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
