import time
import uuid
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import request_validation_exception_handler
from loguru import logger
from typing import List
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import auth
import config
import pages
from config import SERVICE_NAME
from metrics import ERROR_COUNT, REQUEST_COUNT, REQUEST_LATENCY
from models import products_db
from schemas import ProductResponse

# Config logging JSON (niveaux INFO, WARNING, ERROR)
logger.remove()  # Supprime le handler par défaut
logger.add(
    sink="logs.json",
    format="{time:YYYY-MM-DDTHH:mm:ss.SSSZ} | {level} | {message} | {extra}",
    level="INFO",
    serialize=True,  # Format JSON
    rotation="1 day",  # Rotation quotidienne
)

if config.SESSION_SECRET == config.DEFAULT_SESSION_SECRET:
    logger.warning("SESSION_SECRET is not set, signing sessions with the built-in fallback secret")

app = FastAPI(title="Product Showcase")


# Middleware pour logger les requests avec correlation ID
@app.middleware("http")
async def log_requests(request: Request, call_next):
    # Generate or propagate correlation ID (trace-id)
    trace_id = request.headers.get("X-Trace-ID", str(uuid.uuid4()))
    start_time = time.time()

    # Store trace_id in request state for use in other handlers
    request.state.trace_id = trace_id

    # Bind trace_id to logger context
    with logger.contextualize(trace_id=trace_id, service=SERVICE_NAME):
        # Path passé en argument: loguru ne doit pas interpréter ses accolades
        logger.bind(method=request.method, url=str(request.url)).info(
            "Request: {} {}", request.method, request.url.path
        )

        response = await call_next(request)

        # Calculate latency
        latency = time.time() - start_time

        # Record metrics
        REQUEST_COUNT.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=request.url.path
        ).observe(latency)

        logger.info(
            f"Response status: {response.status_code}",
            extra={"status": response.status_code, "latency": latency, "trace_id": trace_id}
        )

        # Add trace_id to response headers for tracing
        response.headers["X-Trace-ID"] = trace_id
        return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Compte les rejets 422 puis renvoie la réponse par défaut de FastAPI."""
    logger.bind(path=request.url.path).warning("Request validation failed: {} error(s)", len(exc.errors()))
    ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=request.url.path, error_type="validation_error").inc()
    return await request_validation_exception_handler(request, exc)


@app.get("/metrics")
async def metrics():
    """Endpoint /metrics compatible Prometheus"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy", "service": SERVICE_NAME}


@app.get("/api/products", response_model=List[ProductResponse])
async def get_products():
    logger.info("Fetching all products")
    return products_db


app.include_router(auth.router)
app.include_router(pages.router)


if __name__ == "__main__":
    logger.info(f"Starting Product Showcase on port {config.PORT}")
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
