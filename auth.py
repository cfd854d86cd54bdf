from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings


@dataclass(frozen=True)
class OwnerContext:
    """The authenticated owner of a request, or an anonymous context."""

    user_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


ANONYMOUS = OwnerContext()


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.auth_secret, salt="owner-token")


def issue_token(user_id: str) -> str:
    if not user_id:
        raise ValueError("user_id is required")
    return _serializer().dumps({"u": user_id})


def resolve_owner(token: Optional[str]) -> OwnerContext:
    if not token:
        return ANONYMOUS
    settings = get_settings()
    try:
        data = _serializer().loads(
            token, max_age=settings.token_max_age_hours * 3600
        )
    except BadSignature:
        # SignatureExpired is a BadSignature too.
        return ANONYMOUS
    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, str) or not user_id:
        return ANONYMOUS
    return OwnerContext(user_id=user_id)


def owner_from_authorization(header: Optional[str]) -> OwnerContext:
    if not header:
        return ANONYMOUS
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ANONYMOUS
    return resolve_owner(token.strip())
