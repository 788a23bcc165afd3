import logging
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from email_validator import validate_email
from pydantic import AfterValidator, BaseModel, field_validator, model_validator
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings
from database import Database
from errors import InternalFailure, RateLimited, TaskAPIError, ValidationFailed
from models import Priority, TaskChanges, User, UserChanges
from security import PasswordHasher, TokenManager
from services import AccountService, TaskService

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def _check_email(v: str) -> str:
    # validate only; emails are stored exactly as submitted
    validate_email(v, check_deliverability=False)
    return v


Email = Annotated[str, AfterValidator(_check_email)]


# Pydantic models for validation
class UserCreate(BaseModel):
    name: str
    email: Email
    password: str

    @field_validator('name')
    @classmethod
    def name_validator(cls, v):
        if len(v) < 2 or len(v) > 50:
            raise ValueError('Name must be between 2 and 50 characters')
        return v

    @field_validator('password')
    @classmethod
    def password_validator(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters')
        return v


class UserLogin(BaseModel):
    email: Email
    password: str


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[Email] = None

    @field_validator('name')
    @classmethod
    def name_validator(cls, v):
        if v is not None and (len(v) < 2 or len(v) > 50):
            raise ValueError('Name must be between 2 and 50 characters')
        return v

    @model_validator(mode='after')
    def at_least_one_field(self):
        if self.name is None and self.email is None:
            raise ValueError('At least one field must be provided for update')
        return self


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM

    @field_validator('title')
    @classmethod
    def title_validator(cls, v):
        if len(v) < 1 or len(v) > 100:
            raise ValueError('Title must be between 1 and 100 characters')
        return v

    @field_validator('description')
    @classmethod
    def description_validator(cls, v):
        if v is not None and (len(v) < 1 or len(v) > 500):
            raise ValueError('Description must be between 1 and 500 characters')
        return v


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    completed: Optional[bool] = None

    @field_validator('title')
    @classmethod
    def title_validator(cls, v):
        if v is not None and (len(v) < 1 or len(v) > 100):
            raise ValueError('Title must be between 1 and 100 characters')
        return v

    @field_validator('description')
    @classmethod
    def description_validator(cls, v):
        if v is not None and (len(v) < 1 or len(v) > 500):
            raise ValueError('Description must be between 1 and 500 characters')
        return v

    @model_validator(mode='after')
    def at_least_one_field(self):
        if all(getattr(self, f) is None for f in ('title', 'description', 'priority', 'completed')):
            raise ValueError('At least one field must be provided for update')
        return self

    def to_changes(self) -> TaskChanges:
        return TaskChanges(
            title=self.title,
            description=self.description,
            priority=self.priority,
            completed=self.completed,
        )


# Dependencies
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def get_task_service(request: Request) -> TaskService:
    return request.app.state.tasks


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    accounts: AccountService = Depends(get_accounts),
) -> User:
    return accounts.authenticate(token)


# Exception handlers
async def api_error_handler(request: Request, exc: TaskAPIError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "")})
    failure = ValidationFailed(errors)
    return JSONResponse(status_code=failure.status_code, content=failure.to_dict())


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        content = {"success": False, "message": "Route not found", "path": request.url.path}
    else:
        content = {"success": False, "message": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("Rate limit hit: %s %s (%s)", request.method, request.url.path, exc.detail)
    failure = RateLimited()
    return JSONResponse(status_code=failure.status_code, content=failure.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=InternalFailure().to_dict(), headers=SECURITY_HEADERS)


# Authentication endpoints
def build_auth_router(limiter: Limiter, settings: Settings) -> APIRouter:
    router = APIRouter(prefix="/api/auth", tags=["auth"])

    @router.post("/register", status_code=status.HTTP_201_CREATED)
    @limiter.limit(settings.auth_rate_limit)
    async def register(
        request: Request,
        user: UserCreate,
        accounts: AccountService = Depends(get_accounts),
    ):
        db_user, token = await accounts.register(user.name, user.email, user.password)
        return {
            "success": True,
            "message": "User created successfully",
            "data": {"user": db_user.to_public(), "token": token},
        }

    @router.post("/login")
    @limiter.limit(settings.auth_rate_limit)
    async def login(
        request: Request,
        credentials: UserLogin,
        accounts: AccountService = Depends(get_accounts),
    ):
        db_user, token = await accounts.login(credentials.email, credentials.password)
        return {
            "success": True,
            "message": "Login successful",
            "data": {"user": db_user.to_public(), "token": token},
        }

    @router.get("/profile")
    async def get_profile(
        current_user: User = Depends(get_current_user),
        accounts: AccountService = Depends(get_accounts),
    ):
        return {"success": True, "data": {"user": accounts.get_profile(current_user).to_public()}}

    @router.put("/profile")
    async def update_profile(
        update: UserUpdate,
        current_user: User = Depends(get_current_user),
        accounts: AccountService = Depends(get_accounts),
    ):
        changes = UserChanges(name=update.name, email=update.email)
        db_user = accounts.update_profile(current_user, changes)
        return {
            "success": True,
            "message": "Profile updated successfully",
            "data": {"user": db_user.to_public()},
        }

    @router.delete("/account")
    async def delete_account(
        current_user: User = Depends(get_current_user),
        accounts: AccountService = Depends(get_accounts),
    ):
        accounts.delete_account(current_user)
        return {"success": True, "message": "Account deleted successfully"}

    return router


# Task endpoints
task_router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@task_router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    task: TaskCreate,
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
):
    db_task = tasks.create_task(current_user, task.title, task.description, task.priority)
    return {
        "success": True,
        "message": "Task created successfully",
        "data": {"task": db_task.to_public()},
    }


@task_router.get("")
async def list_tasks(
    completed: Optional[bool] = None,
    priority: Optional[Priority] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
):
    result, summary = tasks.list_tasks(current_user, completed, priority, page, limit)
    return {
        "success": True,
        "data": {
            "tasks": [t.to_public() for t in result.items],
            "pagination": result.pagination(),
            "statistics": summary,
        },
    }


@task_router.get("/statistics")
async def get_statistics(
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
):
    return {"success": True, "data": tasks.get_statistics(current_user)}


@task_router.get("/{task_id}")
async def get_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
):
    return {"success": True, "data": {"task": tasks.get_task(current_user, task_id).to_public()}}


@task_router.put("/{task_id}")
async def update_task(
    task_id: int,
    update: TaskUpdate,
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
):
    db_task = tasks.update_task(current_user, task_id, update.to_changes())
    return {
        "success": True,
        "message": "Task updated successfully",
        "data": {"task": db_task.to_public()},
    }


@task_router.patch("/{task_id}/toggle")
async def toggle_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
):
    db_task = tasks.toggle_task(current_user, task_id)
    state = "completed" if db_task.completed else "reopened"
    return {
        "success": True,
        "message": f"Task {state} successfully",
        "data": {"task": db_task.to_public()},
    }


@task_router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service),
):
    tasks.delete_task(current_user, task_id)
    return {"success": True, "message": "Task deleted successfully"}


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    database = database or Database()

    app = FastAPI(title="Task Manager API", version=API_VERSION)
    app.state.settings = settings
    app.state.database = database
    app.state.accounts = AccountService(
        database,
        PasswordHasher(rounds=settings.bcrypt_rounds),
        TokenManager.from_settings(settings),
    )
    app.state.tasks = TaskService(database)

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.api_rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter

    app.add_exception_handler(TaskAPIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Add security middlewares
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

    @app.middleware("http")
    async def log_and_harden(request: Request, call_next):
        client = request.client.host if request.client else "-"
        logger.info("%s %s - IP: %s", request.method, request.url.path, client)
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response

    @app.get("/")
    async def index():
        return {
            "success": True,
            "message": "Welcome to the Task Manager API",
            "version": API_VERSION,
            "endpoints": {"auth": "/api/auth", "tasks": "/api/tasks", "health": "/health"},
        }

    @app.get("/health")
    async def health():
        return {
            "success": True,
            "message": "API is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
        }

    app.include_router(build_auth_router(limiter, settings))
    app.include_router(task_router)
    return app
