import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from app.core.logger import get_logger

logger = get_logger("http")

class LogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time = time.perf_counter() - start_time
        logger.info(
            f"{request.method} {request.url.path} | "
            f"status={response.status_code} | "
            f"{process_time * 1000:.1f}ms"
        )
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        return response
