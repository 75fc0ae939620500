from fastapi import FastAPI, Depends, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from recipe_social.routes import follows, conversations, messages, notifications, users, websocket
from recipe_social.core.auth import get_current_user
from recipe_social.core.config import settings
from recipe_social.core.exceptions import RecipeSocialError
from recipe_social.utils.logger import safe_print, log_failure
from dotenv import load_dotenv
import json

load_dotenv()

# Custom JSON encoder that preserves Unicode characters (emoji reactions, message text)
class UnicodeJSONResponse(JSONResponse):
    def render(self, content) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


app = FastAPI(
    title="Recipe Social API",
    description="Follows, direct messages, message requests and notifications for the recipe app",
    version="1.0.0",
    openapi_tags=[
        {"name": "Follows", "description": "Follow graph endpoints"},
        {"name": "Conversations", "description": "Direct conversations and message requests"},
        {"name": "Messages", "description": "Message management endpoints"},
        {"name": "Notifications", "description": "Notification feed and badge"},
        {"name": "Users", "description": "Profile and device token endpoints"},
        {"name": "WebSocket", "description": "WebSocket endpoints"},
    ],
    default_response_class=UnicodeJSONResponse
)

# Add request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming API requests"""
    method = request.method
    path = request.url.path

    safe_print(f"[{method}] {path}")
    if request.query_params:
        safe_print(f"Query Params: {request.query_params}")

    response = await call_next(request)

    safe_print(f"[{method}] {path} - Status: {response.status_code}")
    return response

# Configure CORS - MUST be added before routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)


def cors_headers(request: Request) -> dict:
    """Error responses bypass the CORS middleware, so add the headers here"""
    origin = request.headers.get("origin")
    headers = {}
    if origin in settings.ALLOWED_ORIGINS:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


@app.exception_handler(RecipeSocialError)
async def recipe_social_exception_handler(request: Request, exc: RecipeSocialError):
    """Service errors carry their own status code"""
    if exc.status_code >= 500:
        safe_print(f"[{request.method}] {request.url.path} - {type(exc).__name__}: {exc.message}")
    return UnicodeJSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=cors_headers(request)
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions and ensure CORS headers are included"""
    headers = cors_headers(request)
    if exc.headers:
        headers.update(exc.headers)
    return UnicodeJSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with CORS headers"""
    return UnicodeJSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors())},
        headers=cors_headers(request)
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions and ensure CORS headers are included"""
    log_failure("API", f"handling {request.method} {request.url.path}", exc)
    return UnicodeJSONResponse(
        status_code=500,
        content={"detail": f"Internal server error: {str(exc)}"},
        headers=cors_headers(request)
    )


# Protected routes (require authentication)
app.include_router(follows.router, prefix="/api/follows", tags=["Follows"], dependencies=[Depends(get_current_user)])
app.include_router(conversations.router, prefix="/api/conversations", tags=["Conversations"], dependencies=[Depends(get_current_user)])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"], dependencies=[Depends(get_current_user)])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"], dependencies=[Depends(get_current_user)])
app.include_router(users.router, prefix="/api/users", tags=["Users"], dependencies=[Depends(get_current_user)])

# WebSocket authenticates with a token query parameter
app.include_router(websocket.router, prefix="/api", tags=["WebSocket"])

@app.get("/")
async def root():
    return {"message": "Welcome to the Recipe Social API"}

@app.get("/api/health")
async def health_check():
    return {"status": "healthy"}

# Run uvicorn server when file is executed directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "recipe_social.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
