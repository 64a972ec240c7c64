"""
Email/password identity.

``CredentialProvider`` owns the users collection, password hashing and
bearer tokens, and keeps the session of whoever holds it. ``AuthGateway`` is
the forgiving front door used by routes and scripts: it logs failures and
answers ``None`` / ``False`` instead of raising.
"""

import logging
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as SchemaError
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import create_document, document_exists, get_document, to_public, update_document
from errors import AuthError
from policy import ADMIN
from schemas import Principal, User, UserCreate

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24
ADMIN_EMAILS = {e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()}
USERS_COLLECTION = "users"
REVOKED_TOKENS_COLLECTION = "revoked_tokens"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

AuthListener = Callable[[Optional[Principal]], None]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def principal_from_user(user: dict) -> Principal:
    public = to_public(user)
    return Principal(
        id=public["id"],
        email=public["email"],
        role=public.get("role"),
        display_name=public.get("display_name"),
        is_active=public.get("is_active", True),
    )


class CredentialProvider:
    def __init__(self, db: Database, secret_key: str = SECRET_KEY, algorithm: str = ALGORITHM,
                 expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES, admin_emails=None):
        self.db = db
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        self.admin_emails = ADMIN_EMAILS if admin_emails is None else {e.lower() for e in admin_emails}
        self._current: Optional[Principal] = None
        self._token: Optional[str] = None
        self._listeners: List[AuthListener] = []

    @property
    def current_user(self) -> Optional[Principal]:
        return self._current

    @property
    def token(self) -> Optional[str]:
        return self._token

    def _set_session(self, principal: Optional[Principal], token: Optional[str]) -> None:
        self._current = principal
        self._token = token
        for listener in list(self._listeners):
            listener(principal)

    def _find_by_email(self, email: str) -> Optional[dict]:
        return self.db[USERS_COLLECTION].find_one({"email": email.strip().lower()})

    def create_access_token(self, principal: Principal, expires_delta: Optional[timedelta] = None) -> str:
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode = {"sub": principal.id, "email": principal.email, "exp": expire, "jti": uuid.uuid4().hex}
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def _revoke(self, token: str) -> None:
        claims = jwt.get_unverified_claims(token)
        if not claims.get("jti"):
            return
        expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc) if claims.get("exp") else None
        create_document(self.db, REVOKED_TOKENS_COLLECTION, {"jti": claims["jti"], "expires_at": expires_at})

    def is_revoked(self, jti: str) -> bool:
        return document_exists(self.db, REVOKED_TOKENS_COLLECTION, {"jti": jti})

    def create_user(self, email: str, password: str) -> Principal:
        """Register a new account and sign it in."""
        email = (email or "").strip().lower()
        if not email or not password:
            raise AuthError("Email and password are required")
        try:
            UserCreate(email=email, password=password)
        except SchemaError as exc:
            raise AuthError("Email format is invalid") from exc
        if self._find_by_email(email):
            raise AuthError("Email already registered")

        role = ADMIN if email in self.admin_emails else None
        user = User(email=email, password_hash=get_password_hash(password), role=role)
        user_id = create_document(self.db, USERS_COLLECTION, user)
        principal = Principal(id=user_id, email=email, role=role)
        self._set_session(principal, self.create_access_token(principal))
        return principal

    def sign_in(self, email: str, password: str) -> Principal:
        user = self._find_by_email(email or "")
        if not user or not user.get("password_hash") or not verify_password(password, user["password_hash"]):
            raise AuthError("Incorrect email or password")
        if not user.get("is_active", True):
            raise AuthError("User is inactive")
        principal = principal_from_user(user)
        self._set_session(principal, self.create_access_token(principal))
        return principal

    def sign_out(self) -> None:
        """End the session; its token is recorded as revoked."""
        if self._token is not None:
            self._revoke(self._token)
        self._set_session(None, None)

    def restore_session(self, token: str) -> Principal:
        """Resume the session carried by a bearer token."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            raise AuthError("Could not validate credentials") from exc
        jti = payload.get("jti")
        if not jti or self.is_revoked(jti):
            raise AuthError("Session has ended")
        user_id = payload.get("sub")
        user = get_document(self.db, USERS_COLLECTION, user_id) if user_id else None
        if user is None:
            raise AuthError("Could not validate credentials")
        if not user.get("is_active", True):
            raise AuthError("User is inactive")
        principal = principal_from_user(user)
        self._set_session(principal, token)
        return principal

    def on_auth_state_changed(self, listener: AuthListener) -> Callable[[], None]:
        """Call ``listener`` now with the current user and on every change.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)
        listener(self._current)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def get_user(self, user_id: str) -> Optional[dict]:
        user = get_document(self.db, USERS_COLLECTION, user_id)
        if user is None:
            return None
        public = to_public(user)
        public.pop("password_hash", None)
        return public

    def update_user(self, user_id: str, changes: dict) -> Optional[Principal]:
        if not update_document(self.db, USERS_COLLECTION, user_id, changes):
            return None
        principal = principal_from_user(get_document(self.db, USERS_COLLECTION, user_id))
        if self._current is not None and self._current.id == principal.id:
            self._set_session(principal, self._token)
        return principal


class AuthGateway:
    def __init__(self, provider: CredentialProvider):
        self.provider = provider

    @property
    def token(self) -> Optional[str]:
        return self.provider.token

    def register(self, email: str, password: str) -> Optional[Principal]:
        try:
            return self.provider.create_user(email, password)
        except (AuthError, PyMongoError) as exc:
            logger.error("Error registering user: %s", exc)
            return None

    def login(self, email: str, password: str) -> Optional[Principal]:
        try:
            return self.provider.sign_in(email, password)
        except (AuthError, PyMongoError) as exc:
            logger.error("Error logging in user: %s", exc)
            return None

    def logout(self) -> bool:
        try:
            self.provider.sign_out()
        except PyMongoError as exc:
            logger.error("Error logging out user: %s", exc)
            return False
        return True

    def get_current_user(self) -> Optional[Principal]:
        """Resolve once with whatever the first session-state callback reports."""
        resolved: List[Optional[Principal]] = []

        def on_change(principal):
            if not resolved:
                resolved.append(principal)

        unsubscribe = self.provider.on_auth_state_changed(on_change)
        unsubscribe()
        return resolved[0] if resolved else None
