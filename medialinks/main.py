import uuid
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from medialinks.api import health, download
from medialinks.config.settings import config
from medialinks.core.errors import InvalidInput, MediaError, MethodNotAllowed, classify
from medialinks.core.logging import setup_logging
from medialinks.utils.locale import get_locale

app = FastAPI(
    title=config.api.title,
    description=config.api.description,
    version=config.api.version,
    docs_url="/docs" if config.api.debug else None,
    redoc_url=None
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    request.state.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response

# Routes
app.include_router(health.router, tags=["Health"])
app.include_router(download.router, tags=["Download"])

def error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    """Every failure leaves the service as {"error": message}"""
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)

@app.exception_handler(MediaError)
async def media_error_handler(request: Request, exc: MediaError):
    status_code, message = classify(exc, get_locale(request.headers.get("accept-language")))
    return error_response(status_code, message)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # malformed JSON, missing or blank url/service
    return await media_error_handler(request, InvalidInput())

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return error_response(
            405,
            MethodNotAllowed().render(get_locale(request.headers.get("accept-language"))),
            headers=getattr(exc, "headers", None),
        )
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

@app.on_event("startup")
async def startup_event():
    setup_logging(config.logging)
