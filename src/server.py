"""
FastAPI server for the Nearby discovery service.

Exposes:
  - GET  /health                                  - Health check
  - POST /matches                                 - Ranked nearby matches for a user
  - PUT  /profiles/{user_id}                      - Create/update a profile
  - PUT  /profiles/{user_id}/location             - Share current location
  - DELETE /profiles/{user_id}/location           - Stop sharing location
  - /interests, /profiles/{user_id}/interests     - Taxonomy and declared interests
  - /connections, /messages                       - Connection requests and chat
  - GET  /docs                                    - Interactive API documentation
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException, Request, status, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Dict, Any, List, Optional, Annotated
from datetime import date
import sys
import time

# Import configuration (loads .env automatically)
from src.config import config, validate_config

# Import logging setup
from src.utils.logging_config import logger, setup_logging

from src.graphs.matching import run_matching
from src.models import (
    Connection,
    ConnectionStatus,
    Conversation,
    Interest,
    InterestNode,
    Location,
    MatchResult,
    Message,
    Profile,
)
from src.tools import connection_tools, interest_tools, message_tools, profile_tools
from src.tools.match_filters import apply_min_shared_interests
from src.tools.repository import get_repository
from src.utils.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    StoreTimeoutError,
    StoreUnavailableError,
)

# Setup logging
setup_logging(debug=config.DEBUG)

# ============================================================
# VALIDATE CONFIGURATION AT STARTUP
# ============================================================
try:
    config_status = validate_config()
    logger.info("Configuration validated successfully")
    for key, value in config_status.items():
        logger.info(f"  {key}: {value}")
except ValueError as e:
    logger.error(f"Configuration error: {e}")
    sys.exit(1)

# ============================================================
# FASTAPI APPLICATION
# ============================================================
app = FastAPI(
    title="Nearby Discovery Service",
    description="Interest and proximity based matching, connections and messaging",
    version="1.0.0",
)

# ============================================================
# CORS CONFIGURATION
# ============================================================
origins = [
    "http://localhost:5173",  # Vite dev
    "http://localhost:3000",  # React/Next dev
    "capacitor://localhost",  # Mobile shell
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# AUTHENTICATION
# ============================================================
def verify_service_token(
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    """Require the shared service token when one is configured."""
    if not config.SERVICE_TOKEN:
        return
    if authorization != f"Bearer {config.SERVICE_TOKEN}":
        logger.warning("Unauthorized request: invalid or missing token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


protected = [Depends(verify_service_token)]


# ============================================================
# REQUEST/RESPONSE MODELS
# ============================================================
class MatchRequest(BaseModel):
    """
    Request body for /matches.

    Attributes:
        requester_id (str): Authenticated user asking for matches.
        max_distance_km (float): Radius filter, defaults to DEFAULT_MAX_DISTANCE_KM.
        limit_results (int): Maximum rows ranked, defaults to DEFAULT_LIMIT_RESULTS.
        min_shared_interests (int): Optional threshold applied after ranking.
    """
    requester_id: str
    max_distance_km: Optional[float] = None
    limit_results: Optional[int] = None
    min_shared_interests: Optional[int] = None


class MatchResponse(BaseModel):
    """Ranked matches plus pipeline metadata."""
    success: bool = True
    matches: List[MatchResult] = []
    count: int = 0
    metadata: Dict[str, Any] = {}


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    phone_number: Optional[str] = None


class LocationUpdate(BaseModel):
    latitude: float
    longitude: float
    location_name: Optional[str] = None


class CustomInterestRequest(BaseModel):
    created_by: str
    name: str
    parent_id: Optional[str] = None
    category: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None


class ConnectionRequest(BaseModel):
    requester_id: str
    receiver_id: str


class ConnectionResponseRequest(BaseModel):
    actor_id: str
    accept: bool


class SendMessageRequest(BaseModel):
    sender_id: str
    receiver_id: str
    content: str = Field(..., max_length=5000)
    message_type: str = "text"


class MarkReadRequest(BaseModel):
    reader_id: str
    sender_id: str


# ============================================================
# MIDDLEWARE
# ============================================================
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """
    Middleware to track request processing time.

    Adds X-Process-Time header to all responses showing how long request took.
    """
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# ============================================================
# ROUTES
# ============================================================

@app.get("/health", tags=["System"])
async def health_check() -> Dict[str, str]:
    """
    Health check endpoint.

    Returns:
        dict: {"status": "healthy"}
    """
    return {"status": "healthy"}


@app.get("/", tags=["System"])
async def root() -> Dict[str, str]:
    """Service information and where to find the docs."""
    return {
        "service": "Nearby Discovery Service",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.post("/matches", response_model=MatchResponse, tags=["Matching"], dependencies=protected)
def find_matches_endpoint(request: MatchRequest) -> MatchResponse:
    """
    Rank other users for the requester by shared interests and proximity.

    The optional min_shared_interests threshold is applied to the already
    ranked and limited list; it never triggers a second ranking pass.
    """
    logger.info(f"Received match request for {request.requester_id}")
    start_time = time.time()

    result = run_matching(
        request.requester_id,
        request.max_distance_km,
        request.limit_results,
    )
    matches = apply_min_shared_interests(
        result.get("final_matches", []), request.min_shared_interests
    )

    logger.info(
        "matches summary: requester=%s returned=%s time=%.2fs",
        request.requester_id,
        len(matches),
        time.time() - start_time,
    )
    return MatchResponse(
        matches=matches,
        count=len(matches),
        metadata=result.get("response_metadata", {}),
    )


@app.get("/profiles/{user_id}", response_model=Profile, tags=["Profiles"], dependencies=protected)
def get_profile(user_id: str) -> Profile:
    return profile_tools.get_profile(user_id)


@app.put("/profiles/{user_id}", response_model=Profile, tags=["Profiles"], dependencies=protected)
def save_profile(user_id: str, update: ProfileUpdate) -> Profile:
    """Create the profile on first save, update it afterwards."""
    return profile_tools.save_profile(user_id, update.model_dump(exclude_unset=True))


@app.put("/profiles/{user_id}/location", response_model=Location, tags=["Profiles"], dependencies=protected)
def update_location(user_id: str, update: LocationUpdate) -> Location:
    return profile_tools.update_location(
        user_id, update.latitude, update.longitude, update.location_name
    )


@app.delete("/profiles/{user_id}/location", tags=["Profiles"], dependencies=protected)
def clear_location(user_id: str) -> Dict[str, bool]:
    return {"cleared": profile_tools.clear_location(user_id)}


@app.get("/interests", response_model=List[Interest], tags=["Interests"], dependencies=protected)
def list_interests() -> List[Interest]:
    return interest_tools.list_interests()


@app.get("/interests/tree", response_model=List[InterestNode], tags=["Interests"], dependencies=protected)
def interest_tree() -> List[InterestNode]:
    return interest_tools.build_interest_tree(interest_tools.list_interests())


@app.post(
    "/interests",
    response_model=Interest,
    status_code=status.HTTP_201_CREATED,
    tags=["Interests"],
    dependencies=protected,
)
def create_interest(request: CustomInterestRequest) -> Interest:
    return interest_tools.create_custom_interest(
        request.created_by,
        request.name,
        parent_id=request.parent_id,
        category=request.category,
        icon=request.icon,
        description=request.description,
    )


@app.delete("/interests/{interest_id}", tags=["Interests"], dependencies=protected)
def delete_interest(interest_id: str) -> Dict[str, List[str]]:
    """Delete an interest together with everything nested under it."""
    return {"deleted": interest_tools.delete_interest(interest_id)}


@app.get("/profiles/{user_id}/interests", response_model=List[Interest], tags=["Interests"], dependencies=protected)
def list_user_interests(user_id: str) -> List[Interest]:
    return interest_tools.list_user_interests(user_id)


@app.post("/profiles/{user_id}/interests/{interest_id}", tags=["Interests"], dependencies=protected)
def add_user_interest(user_id: str, interest_id: str) -> Dict[str, bool]:
    return {"added": interest_tools.add_user_interest(user_id, interest_id)}


@app.delete("/profiles/{user_id}/interests/{interest_id}", tags=["Interests"], dependencies=protected)
def remove_user_interest(user_id: str, interest_id: str) -> Dict[str, bool]:
    return {"removed": interest_tools.remove_user_interest(user_id, interest_id)}


@app.post(
    "/connections",
    response_model=Connection,
    status_code=status.HTTP_201_CREATED,
    tags=["Connections"],
    dependencies=protected,
)
def request_connection(request: ConnectionRequest) -> Connection:
    return connection_tools.request_connection(request.requester_id, request.receiver_id)


@app.post("/connections/{connection_id}/respond", response_model=Connection, tags=["Connections"], dependencies=protected)
def respond_to_connection(connection_id: str, request: ConnectionResponseRequest) -> Connection:
    return connection_tools.respond_to_connection(
        connection_id, request.actor_id, request.accept
    )


@app.get(
    "/profiles/{user_id}/connections/pending",
    response_model=List[Connection],
    tags=["Connections"],
    dependencies=protected,
)
def pending_requests(user_id: str) -> List[Connection]:
    return connection_tools.pending_requests(user_id)


@app.get("/profiles/{user_id}/connections", response_model=List[Connection], tags=["Connections"], dependencies=protected)
def list_connections(user_id: str, status: Optional[ConnectionStatus] = None) -> List[Connection]:
    return connection_tools.list_connections(user_id, status)


@app.post(
    "/messages",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
    tags=["Messages"],
    dependencies=protected,
)
def send_message(request: SendMessageRequest) -> Message:
    return message_tools.send_message(
        request.sender_id, request.receiver_id, request.content, request.message_type
    )


@app.get("/messages/thread", response_model=List[Message], tags=["Messages"], dependencies=protected)
def get_thread(user_id: str, other_id: str) -> List[Message]:
    return message_tools.get_thread(user_id, other_id)


@app.post("/messages/read", tags=["Messages"], dependencies=protected)
def mark_read(request: MarkReadRequest) -> Dict[str, int]:
    return {"updated": message_tools.mark_thread_read(request.reader_id, request.sender_id)}


@app.get("/profiles/{user_id}/conversations", response_model=List[Conversation], tags=["Messages"], dependencies=protected)
def list_conversations(user_id: str) -> List[Conversation]:
    return message_tools.list_conversations(user_id)


# ============================================================
# ERROR HANDLERS
# ============================================================

def _error_response(status_code: int, error: str, retryable: bool = False) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "status_code": status_code,
            "retryable": retryable,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTP exceptions with consistent error response format.
    """
    logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    logger.warning(f"Invalid input on {request.url.path}: {exc}")
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    logger.warning(f"Permission denied on {request.url.path}: {exc}")
    return _error_response(status.HTTP_403_FORBIDDEN, str(exc))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return _error_response(status.HTTP_409_CONFLICT, str(exc))


@app.exception_handler(StoreTimeoutError)
async def store_timeout_handler(request: Request, exc: StoreTimeoutError):
    logger.error(f"Store timed out on {request.url.path}: {exc}")
    return _error_response(status.HTTP_504_GATEWAY_TIMEOUT, "Store request timed out", retryable=True)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Store unavailable on {request.url.path}: {exc}")
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Store unavailable", retryable=True)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.

    Never returns the exception message to the client; use logging instead.
    """
    logger.error(f"Unhandled exception: {str(exc)}")
    logger.exception("Full traceback:")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# ============================================================
# STARTUP EVENTS
# ============================================================

@app.on_event("startup")
async def startup_event():
    """
    Run when the application starts.

    Logs startup info and seeds the demo taxonomy when asked to.
    """
    logger.info("=" * 60)
    logger.info("Nearby Discovery Service Starting Up")
    logger.info("=" * 60)

    logger.info(f"Store backend: {config.STORE_BACKEND}")
    logger.info(f"Debug Mode: {config.DEBUG}")
    logger.info(f"Store Timeout: {config.STORE_TIMEOUT}s")
    logger.info(
        f"Matching defaults: {config.DEFAULT_MAX_DISTANCE_KM}km, "
        f"{config.DEFAULT_LIMIT_RESULTS} results"
    )

    if config.SEED_DEMO_DATA:
        interest_tools.seed_interest_taxonomy(repository=get_repository())

    logger.info("Service ready to handle requests")


@app.on_event("shutdown")
async def shutdown_event():
    """Run when the application shuts down."""
    logger.info("Nearby Discovery Service Shutting Down")


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    """
    Run with: python -m uvicorn src.server:app --reload
    """
    import uvicorn
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="info" if not config.DEBUG else "debug"
    )
