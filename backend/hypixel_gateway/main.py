import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from hypixel_gateway.core.config import Settings, load_settings
from hypixel_gateway.core.errors import ConfigurationError, GatewayError, InvalidRequestError
from hypixel_gateway.core.limiter import Throttle, rate_limit_key
from hypixel_gateway.routes import registry
from hypixel_gateway.schemas.responses import ErrorEnvelope, error_response
from hypixel_gateway.services.gateway import HypixelService
from hypixel_gateway.services.hypixel import HypixelClient
from hypixel_gateway.services.rate_limit import RateLimitKeyExtractor

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


class JSONFormatter(logging.Formatter):
    EXTRA_FIELDS = ("request_path", "response_time", "status_code", "rate_limit_key")

    def format(self, record):
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
        }
        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)
        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def configure_logging(level: str) -> None:
    """Send every record through one JSON handler on the root logger."""
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level, logging.INFO))


def create_app(settings: Optional[Settings] = None, client=None) -> FastAPI:
    """
    Build the gateway.

    ``client`` is the upstream collaborator; when omitted a HypixelClient is
    built from the settings. Raises ConfigurationError for bad endpoint flags.
    """
    settings = settings or load_settings()
    configure_logging(settings.LOG_LEVEL)

    service = HypixelService(client if client is not None else HypixelClient.from_settings(settings))
    extractor = RateLimitKeyExtractor(service)
    throttle = Throttle(
        settings.SERVER_PERIOD, settings.SERVER_BURST, settings.RATE_LIMIT_STRATEGY
    )
    router = registry.build(settings.enabled_endpoints())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"Starting Hypixel gateway on {settings.BASE_URL}:{settings.PORT}")
        yield
        # Shutdown
        await service.aclose()
        logger.info("Shutting down Hypixel gateway")

    app = FastAPI(
        title="Hypixel API Gateway",
        description="Cached, rate limited gateway in front of the Hypixel API",
        version=VERSION,
        lifespan=lifespan,
    )

    app.state.hypixel = service

    # Rate limiting: runs before any route is matched
    @app.middleware("http")
    async def throttle_requests(request: Request, call_next):
        client_host = request.client.host if request.client else None
        try:
            decision = await extractor.extract(
                request.url.path, request.query_params, client_host
            )
            request.state.rate_limit_key = decision.key
            await throttle.acquire(decision.key)
        except GatewayError as exc:
            logger.warning(f"Rejected {request.method} {request.url.path}: {exc.cause}")
            return error_response(exc)
        return await call_next(request)

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time

        log_record = logging.LogRecord(
            name="api",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg=f"{request.method} {request.url.path}",
            args=(),
            exc_info=None,
        )
        log_record.request_path = str(request.url.path)
        log_record.response_time = f"{process_time:.3f}s"
        log_record.status_code = response.status_code
        log_record.rate_limit_key = rate_limit_key(request)

        logger.handle(log_record)

        return response

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        cause = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return error_response(InvalidRequestError(cause))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorEnvelope(cause="Internal server error").model_dump(),
        )

    @app.get("/health", include_in_schema=False)
    async def health_check():
        return {
            "status": "healthy",
            "service": "hypixel-gateway",
            "version": VERSION,
        }

    app.include_router(router)

    # Everything unmatched, including disabled endpoints, ends up here.
    @app.api_route(
        "/{full_path:path}",
        methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        include_in_schema=False,
    )
    async def default(full_path: str):
        return RedirectResponse(settings.DEFAULT_REDIRECT_URL, status_code=308)

    return app


def run() -> None:
    try:
        settings = load_settings()
        app = create_app(settings)
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.critical(str(exc))
        raise SystemExit(1) from exc
    uvicorn.run(app, host=settings.BASE_URL, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
