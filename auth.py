"""
Bearer-token identity resolution.

Token verification is delegated to an identity provider; the default one
checks JWTs with python-jose against a configured key, which covers both
HS256 development tokens and RS256 provider tokens (e.g. Firebase ID
tokens verified with the provider's public key).
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from jose import JWTError, jwt
from pydantic import BaseModel, EmailStr
from pydantic import ValidationError as PydanticValidationError

from errors import Unauthorized
from repositories import UserRepository
from scheduling import ScheduleSeeder

logger = logging.getLogger(__name__)

ACCESS_TOKEN_EXPIRE_DAYS = 30


class IdentityClaims(BaseModel):
    subject: str
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    picture: Optional[str] = None


class JWTIdentityProvider:
    def __init__(self, key: str, algorithms: Optional[List[str]] = None,
                 audience: Optional[str] = None, issuer: Optional[str] = None):
        self.key = key
        self.algorithms = algorithms or ["HS256"]
        self.audience = audience
        self.issuer = issuer

    def verify(self, token: str) -> IdentityClaims:
        try:
            payload = jwt.decode(
                token,
                self.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as exc:
            logger.warning("Credential rejected: %s", exc)
            raise Unauthorized() from exc

        subject = payload.get("sub") or payload.get("uid") or payload.get("user_id")
        if not subject:
            raise Unauthorized()
        try:
            return IdentityClaims(
                subject=str(subject),
                email=payload.get("email"),
                name=payload.get("name"),
                picture=payload.get("picture"),
            )
        except PydanticValidationError as exc:
            logger.warning("Credential carries malformed claims")
            raise Unauthorized() from exc


def create_access_token(data: Dict[str, Any], key: str, expires_delta: Optional[timedelta] = None,
                        algorithm: str = "HS256") -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, key, algorithm=algorithm)


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized()
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise Unauthorized()
    return token


def resolve_user(authorization: Optional[str], provider: JWTIdentityProvider, users: UserRepository,
                 seeder: Optional[ScheduleSeeder] = None, today: Optional[date] = None,
                 horizon_days: int = 1) -> Dict[str, Any]:
    """
    Verify the Authorization header, upsert the profile and seed the schedule.

    Nothing is written when verification fails.
    """
    claims = provider.verify(bearer_token(authorization))
    user = users.upsert(claims.subject, email=claims.email, display_name=claims.name,
                        avatar_url=claims.picture)
    if seeder is not None and horizon_days > 0:
        seeder.ensure_scheduled(user["id"], today or date.today(), horizon_days)
    return user
