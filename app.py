import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional, Union

from bson.errors import InvalidId
from fastapi import APIRouter, Body, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError
from werkzeug.security import check_password_hash, generate_password_hash

from config import Config
from errors import (
    ConflictError,
    InternalError,
    InvalidCredentials,
    NotFoundError,
    ValidationError,
    register_exception_handlers,
)
from models import CONTENT, MESSAGES, USERS, MongoStore, get_database, serialize, to_utc


# ------------------------------------------------------------
# Configuration
# ------------------------------------------------------------

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ----------------------------
# Pydantic Models
# ----------------------------
# Every field is optional here so that missing fields reach the handlers,
# which answer with 400 instead of FastAPI's 422.

class SignupRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    hospital: Optional[str] = None
    email: Optional[str] = None
    region: Optional[str] = None

class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    hospital: Optional[str] = None
    region: Optional[str] = None

class ContentCreate(BaseModel):
    userId: Optional[str] = None
    name: Optional[str] = None
    quantity: Optional[Union[int, float]] = None
    expiryDate: Optional[datetime] = None
    manufacturingDate: Optional[datetime] = None
    hospital: Optional[str] = None
    region: Optional[str] = None

# hospital, region and userId are fixed at creation and not accepted here
class ContentUpdate(BaseModel):
    name: Optional[str] = None
    quantity: Optional[Union[int, float]] = None
    expiryDate: Optional[datetime] = None
    manufacturingDate: Optional[datetime] = None

class MessageCreate(BaseModel):
    userId: Optional[str] = None
    hospitalName: Optional[str] = None
    query: Optional[str] = None


# ------------------------------------------------------------
# Dependencies
# ------------------------------------------------------------

def get_store(request: Request) -> MongoStore:
    return request.app.state.store

def get_config(request: Request):
    return request.app.state.config

def hash_password(password, method=None):
    if method:
        return generate_password_hash(password, method=method)
    return generate_password_hash(password)


# ------------------------------------------------------------
# User signup, login and profile
# ------------------------------------------------------------

@router.post("/signup", status_code=201)
def signup(payload: SignupRequest, store: MongoStore = Depends(get_store), config=Depends(get_config)):
    if not all([payload.username, payload.password, payload.hospital, payload.email, payload.region]):
        raise ValidationError("All fields are required")

    try:
        if store.find_one(USERS, {"username": payload.username}):
            raise ConflictError("Username already exists")

        user_doc = {
            "username": payload.username,
            "password": hash_password(payload.password, config.PASSWORD_HASH_METHOD),
            "hospital": payload.hospital,
            "email": payload.email,
            "region": payload.region,
        }
        store.insert(USERS, user_doc)
    except DuplicateKeyError:
        # another signup for the same username won the race past the lookup above
        raise ConflictError("Username already exists")
    except PyMongoError:
        logger.exception("Error during signup")
        raise InternalError("Internal server error")

    return {"message": "User registered successfully", "username": payload.username}


@router.post("/login")
def login(payload: LoginRequest, store: MongoStore = Depends(get_store)):
    # hospital and region must be sent but are not compared with the stored user
    if not all([payload.username, payload.password, payload.hospital, payload.region]):
        raise ValidationError("Username and password are required")

    try:
        user = store.find_one(USERS, {"username": payload.username})
    except PyMongoError:
        logger.exception("Error during login")
        raise InternalError("Internal server error")

    if not user or not check_password_hash(user["password"], payload.password):
        raise InvalidCredentials()

    # no token or session is issued
    return {"message": "Logged in successfully", "username": payload.username}


@router.get("/profile")
def get_profile(username: Optional[str] = None, store: MongoStore = Depends(get_store)):
    try:
        user = store.find_one(USERS, {"username": username}) if username else None
    except PyMongoError:
        logger.exception("Error fetching user")
        raise InternalError("Internal server error")

    if not user:
        raise NotFoundError("User not found")

    return {"username": user["username"], "hospital": user["hospital"], "email": user["email"]}


# ------------------------------------------------------------
# CRUD Operations for Content (inventory)
# ------------------------------------------------------------
# Bodies are validated inside the handlers: like a store failure, a value
# that can't be cast (quantity, dates, a malformed id) answers 500 with the
# route's "Error ... content" message.

CONTENT_ERRORS = (PyMongoError, PydanticValidationError, InvalidId)


def _content_fields(model, body, **dump_options):
    fields = model.model_validate(body or {}).model_dump(**dump_options)
    return {k: to_utc(v) for k, v in fields.items()}


# no presence checks: absent fields are stored as null
@router.post("/content", status_code=201)
def create_content(body: Optional[Dict[str, Any]] = Body(default=None), store: MongoStore = Depends(get_store)):
    try:
        content = store.insert(CONTENT, _content_fields(ContentCreate, body))
    except CONTENT_ERRORS as e:
        raise InternalError(f"Error creating content: {e}")
    return serialize(content)


# must stay above /content/{user_id}, otherwise "full" is read as a user id
@router.get("/content/full")
def get_full_content(store: MongoStore = Depends(get_store)):
    try:
        items = store.find(CONTENT)
    except PyMongoError as e:
        raise InternalError(f"Error fetching full content details: {e}")
    return [serialize(item) for item in items]


@router.get("/content/{user_id}")
def get_user_content(user_id: str, store: MongoStore = Depends(get_store)):
    try:
        items = store.find(CONTENT, {"userId": user_id})
    except PyMongoError as e:
        raise InternalError(f"Error fetching content: {e}")
    return [serialize(item) for item in items]


# a well-formed id that matches nothing answers 200 with a null body, not 404;
# only keys present in the body are set, so an explicit null clears a field
@router.put("/content/{content_id}")
def update_content(content_id: str, body: Optional[Dict[str, Any]] = Body(default=None), store: MongoStore = Depends(get_store)):
    try:
        update_data = _content_fields(ContentUpdate, body, exclude_unset=True)
        updated = store.update_by_id(CONTENT, content_id, update_data)
    except CONTENT_ERRORS as e:
        raise InternalError(f"Error updating content: {e}")
    return serialize(updated)


@router.delete("/content/{content_id}", status_code=204, response_class=Response)
def delete_content(content_id: str, store: MongoStore = Depends(get_store)):
    try:
        store.delete_by_id(CONTENT, content_id)
    except (PyMongoError, InvalidId) as e:
        raise InternalError(f"Error deleting content: {e}")
    return Response(status_code=204)


# ------------------------------------------------------------
# Message board
# ------------------------------------------------------------

@router.get("/messages")
def get_messages(store: MongoStore = Depends(get_store)):
    try:
        messages = store.find(MESSAGES)
    except PyMongoError:
        logger.exception("Error fetching messages")
        raise InternalError("Error fetching messages")
    return [serialize(m) for m in messages]


@router.post("/messages", status_code=201)
def create_message(payload: MessageCreate, store: MongoStore = Depends(get_store)):
    if not all([payload.userId, payload.hospitalName, payload.query]):
        raise ValidationError("Invalid message format")

    try:
        message = store.insert(MESSAGES, payload.model_dump())
    except PyMongoError:
        logger.exception("Error creating message")
        raise InternalError("Error creating message")
    return serialize(message)


# ------------------------------------------------------------
# Application
# ------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    config = app.state.config
    store = app.state.store

    if not config.MONGODB_URI:
        logger.error("MONGODB_URI is not set")
    try:
        store.ping()
        store.ensure_indexes()
        logger.info("MongoDB connected")
    except PyMongoError as e:
        # keep serving; every request will answer 500 until the database is reachable
        logger.error("MongoDB connection error: %s", e)

    yield

    store.close()


def create_app(config=Config, store: Optional[MongoStore] = None) -> FastAPI:
    app = FastAPI(title="Medical Supply Inventory", lifespan=lifespan)

    app.state.config = config
    app.state.store = store if store is not None else MongoStore(get_database(config))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(router)

    return app


# ------------------------------------------------------------
# Run the API
# ------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn
    logger.info("Server running on port %s", Config.PORT)
    uvicorn.run("app:create_app", factory=True, host=Config.HOST, port=Config.PORT)
