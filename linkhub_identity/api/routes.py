"""HTTP route definitions for the identity service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, Request, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..config import get_settings
from ..domain.account import Account
from ..domain.contracts import LoginInput, RegisterAccountInput
from ..domain.errors import RateLimitedError
from ..domain.service import AccountService, Session
from ..security.rate_limiter import RateLimiter, SlidingWindowRateLimiter
from ..security.redis_rate_limiter import RedisSlidingWindowRateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AccountView(_CamelModel):
    """Client-safe projection of an `Account`; never carries the digest."""

    id: str
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    email: EmailStr
    account_type: str = Field(..., alias="accountType")
    created_at: str = Field(..., alias="createdAt")

    @classmethod
    def from_domain(cls, account: Account) -> "AccountView":
        return cls(
            id=account.account_id,
            first_name=account.first_name,
            last_name=account.last_name,
            email=account.email,
            account_type=account.account_type.value,
            created_at=account.created_at.isoformat(),
        )


class RegisterRequest(_CamelModel):
    """Registration payload; presence checks happen in the service."""

    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    email: EmailStr | None = None
    password: str | None = None
    account_type: str | None = Field(default=None, alias="accountType")

    @field_validator("email", mode="before")
    @classmethod
    def _blank_email_is_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class LoginRequest(_CamelModel):
    email: str | None = None
    password: str | None = None


class RegisterResponse(_CamelModel):
    message: str = "User registered successfully"
    user: AccountView
    token: str
    expires_in: int = Field(..., alias="expiresIn")


class LoginResponse(_CamelModel):
    user: AccountView
    token: str
    expires_in: int = Field(..., alias="expiresIn")


class UserResponse(_CamelModel):
    user: AccountView


settings = get_settings()


def _build_rate_limiter() -> RateLimiter:
    """Instantiate the configured rate limiter backend, preferring Redis when available."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        try:
            import redis

            client = redis.from_url(settings.redis_url)
            client.ping()
            logger.info("rate limiter configured for redis backend at %s", settings.redis_url)
            return RedisSlidingWindowRateLimiter(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
        except Exception as exc:  # pragma: no cover - depends on a live redis
            logger.warning("redis rate limiter unavailable, falling back to in-memory: %s", exc)

    logger.info("rate limiter using in-memory backend")
    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


rate_limiter = _build_rate_limiter()


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def bearer_token(authorization: str | None) -> str | None:
    """Extract the credential from an ``Authorization: Bearer`` header value."""
    if not authorization:
        return None
    scheme, _, credential = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credential.strip() or None


def _throttle(key: str) -> None:
    if not rate_limiter.allow(key):
        raise RateLimitedError("Too many requests")


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: Request,
    payload: RegisterRequest,
    service: AccountService = Depends(get_service),
) -> RegisterResponse:
    """Create an account and return its projection plus a bearer token."""
    _throttle(f"register:{_client_host(request)}")
    session = service.register(
        RegisterAccountInput(
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            password=payload.password,
            account_type=payload.account_type,
        )
    )
    return RegisterResponse(
        user=AccountView.from_domain(session.account),
        token=session.access_token,
        expires_in=session.expires_in,
    )


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
) -> LoginResponse:
    """Exchange an email and password for a bearer token."""
    rate_key = f"login:{(payload.email or '').strip().lower()}"
    _throttle(rate_key)
    session: Session = service.authenticate(LoginInput(email=payload.email, password=payload.password))
    rate_limiter.reset(rate_key)
    return LoginResponse(
        user=AccountView.from_domain(session.account),
        token=session.access_token,
        expires_in=session.expires_in,
    )


@router.get("/user", response_model=UserResponse)
def current_user(
    authorization: str | None = Header(default=None),
    service: AccountService = Depends(get_service),
) -> UserResponse:
    """Resolve the bearer token to the account it was issued for."""
    account = service.resolve_identity(bearer_token(authorization))
    return UserResponse(user=AccountView.from_domain(account))
