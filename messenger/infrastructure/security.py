import datetime
import secrets
from uuid import UUID

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError
from passlib.context import CryptContext

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class SecurityService:
    def __init__(self, config):
        self.config = config
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return self.pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def create_access_token(
        self, user_id: UUID, expires_delta: datetime.timedelta | None = None
    ) -> tuple[str, datetime.datetime]:
        expire = datetime.datetime.now(datetime.timezone.utc) + (
            expires_delta
            or datetime.timedelta(minutes=self.config.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        to_encode = {
            "sub": str(user_id),
            "type": ACCESS_TOKEN_TYPE,
            "nonce": secrets.token_hex(8),
            "exp": expire,
        }
        encoded_jwt = jwt.encode(
            to_encode, self.config.SECRET_KEY, algorithm=self.config.ALGORITHM
        )
        return encoded_jwt, expire

    def create_refresh_token(self, user_id: UUID) -> tuple[str, datetime.datetime]:
        expire = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
            days=self.config.REFRESH_TOKEN_EXPIRE_DAYS
        )
        to_encode = {
            "sub": str(user_id),
            "type": REFRESH_TOKEN_TYPE,
            "nonce": secrets.token_hex(8),
            "exp": expire,
        }
        encoded_jwt = jwt.encode(
            to_encode, self.config.REFRESH_SECRET_KEY, algorithm=self.config.ALGORITHM
        )
        return encoded_jwt, expire

    def decode_access_token(self, token: str) -> UUID | None:
        return self._decode(token, self.config.SECRET_KEY, ACCESS_TOKEN_TYPE)

    def decode_refresh_token(self, token: str) -> UUID | None:
        return self._decode(token, self.config.REFRESH_SECRET_KEY, REFRESH_TOKEN_TYPE)

    def _decode(self, token: str, key: str, token_type: str) -> UUID | None:
        try:
            payload = jwt.decode(token, key, algorithms=[self.config.ALGORITHM])
        except (ExpiredSignatureError, InvalidTokenError):
            return None
        if payload.get("type") != token_type:
            return None
        try:
            return UUID(payload.get("sub"))
        except (TypeError, ValueError):
            return None
