import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

from config import Settings
from errors import CredentialRejected

logger = logging.getLogger(__name__)


class PasswordHasher:
    """bcrypt hashing; the blocking work runs in the threadpool."""

    def __init__(self, rounds: int = 12):
        self.pwd_context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds
        )

    async def hash(self, password: str) -> str:
        return await run_in_threadpool(self.pwd_context.hash, password)

    async def verify(self, plain_password: str, hashed_password: str) -> bool:
        return await run_in_threadpool(self.pwd_context.verify, plain_password, hashed_password)


class TokenManager:
    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 24 * 60):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenManager":
        return cls(
            settings.secret_key,
            algorithm=settings.algorithm,
            expire_minutes=settings.access_token_expire_minutes,
        )

    def issue(self, user_id: int) -> str:
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.expire_minutes)
        to_encode = {"sub": str(user_id), "exp": expire}
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> int:
        """Return the user id carried by token, or raise CredentialRejected."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            logger.info("Rejected token: %s", exc)
            raise CredentialRejected()
        subject = payload.get("sub")
        if subject is None or not str(subject).isdigit():
            raise CredentialRejected()
        return int(subject)
