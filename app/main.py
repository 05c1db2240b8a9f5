from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.core.config import settings
from app.core.errors import DomainError
from app.core.logger import logger
from app.db.session import init_db
from app.middleware.log_middleware import LogMiddleware

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

from fastapi.middleware.cors import CORSMiddleware

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LogMiddleware)

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    # Rejections are normal outcomes, not faults
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code} ({exc.detail})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.detail},
    )

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc!r}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "detail": "Internal server error"},
    )

@app.on_event("startup")
async def on_startup():
    if settings.AUTO_CREATE_TABLES:
        await init_db()
    logger.info(f"{settings.PROJECT_NAME} started")

@app.get("/")
async def root():
    return {"message": "Welcome to CareQueue API"}

from app.api.api import api_router
app.include_router(api_router, prefix=settings.API_V1_STR)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
