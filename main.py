import logging
from contextlib import asynccontextmanager
from typing import Optional, Literal, List, Any, Dict

from fastapi import APIRouter, FastAPI, Body, Depends, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

from accounts import AccountService
from config import Settings, configure_logging, load_settings
from database import connect, ensure_indexes
from errors import ServiceError
from lifecycle import PostLifecycle
from repository import AccountRepository, PostRepository
from schemas import ClaimRequest, LoginRequest, Post, PostCreateRequest, Principal
from security import principal_from_header
from sweeper import start_expiry_sweeper, stop_expiry_sweeper

logger = logging.getLogger(__name__)

router = APIRouter()


############################
# Dependencies
############################

def get_lifecycle(request: Request) -> PostLifecycle:
    return request.app.state.lifecycle


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def current_principal(request: Request, authorization: Optional[str] = Header(None)) -> Principal:
    return principal_from_header(request.app.state.settings, authorization)


############################
# App factory
############################

def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    if db is None:
        db = connect(settings)

    posts = PostRepository(db)
    accounts = AccountRepository(db)
    lifecycle = PostLifecycle(posts, accounts)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            ensure_indexes(db)
        except PyMongoError as e:
            logger.error(f"Could not create indexes: {str(e)[:200]}")
        sweeper = start_expiry_sweeper(lifecycle, settings.expiry_sweep_interval_seconds)
        yield
        await stop_expiry_sweeper(sweeper)

    app = FastAPI(title="FoodShare API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.lifecycle = lifecycle
    app.state.account_service = AccountService(accounts, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    app.include_router(router)
    return app


############################
# Health & Test
############################
@router.get("/")
def read_root():
    return {"message": "FoodShare API running"}


@router.get("/test")
def test_database(request: Request):
    db = request.app.state.db
    settings = request.app.state.settings
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
        "database_name": settings.database_name,
        "connection_status": "Not Connected",
        "collections": []
    }
    if db is not None:
        response["database"] = "✅ Available"
        try:
            response["collections"] = db.list_collection_names()
            response["connection_status"] = "Connected"
            response["database"] = "✅ Connected & Working"
        except PyMongoError as e:
            response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    return response


############################
# Auth
############################
@router.post("/register", status_code=201)
def register(payload: Dict[str, Any] = Body(...), service: AccountService = Depends(get_account_service)):
    return service.register(payload)


@router.post("/login")
def login(req: LoginRequest, service: AccountService = Depends(get_account_service)):
    return service.login(req)


############################
# Posts
############################
@router.get("/posts", response_model=List[Post])
def list_posts(
    status: Optional[Literal['all', 'open', 'claimed', 'completed', 'expired']] = Query(None),
    dietary: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    canteen_id: Optional[str] = Query(None),
    lifecycle: PostLifecycle = Depends(get_lifecycle),
):
    return lifecycle.list_posts(status=status, dietary=dietary, q=q, canteen_id=canteen_id)


@router.get("/posts/{post_id}", response_model=Post)
def get_post(post_id: str, lifecycle: PostLifecycle = Depends(get_lifecycle)):
    return lifecycle.get_post(post_id)


@router.post("/posts", response_model=Post, status_code=201)
def create_post(
    req: PostCreateRequest,
    principal: Principal = Depends(current_principal),
    lifecycle: PostLifecycle = Depends(get_lifecycle),
):
    return lifecycle.create_post(principal, req)


@router.put("/posts/{post_id}/claim", response_model=Post)
def claim_post(
    post_id: str,
    req: ClaimRequest,
    principal: Principal = Depends(current_principal),
    lifecycle: PostLifecycle = Depends(get_lifecycle),
):
    return lifecycle.claim_post(principal, post_id, req.ngo_name, req.phone)


@router.put("/posts/{post_id}/complete", response_model=Post)
def complete_post(
    post_id: str,
    principal: Principal = Depends(current_principal),
    lifecycle: PostLifecycle = Depends(get_lifecycle),
):
    return lifecycle.complete_post(principal, post_id)


@router.delete("/posts/{post_id}")
def delete_post(
    post_id: str,
    principal: Principal = Depends(current_principal),
    lifecycle: PostLifecycle = Depends(get_lifecycle),
):
    return lifecycle.delete_post(principal, post_id)


############################
# Overview
############################
@router.get("/overview")
def overview(lifecycle: PostLifecycle = Depends(get_lifecycle)):
    return lifecycle.overview()


if __name__ == "__main__":
    import uvicorn
    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
