"""
Admin authentication: credential check, session cookies and the Flask-Login
wiring that turns a valid cookie into the single admin identity.

There are no user accounts. A successful login issues a cookie that carries
one claim, isAuthenticated=true, either signed into the cookie itself
(SignedCookieSessions) or held server-side under an opaque id
(ServerSideSessions). Both expose issue() / check(cookies) / clear().
"""
import hmac
import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC

from flask import current_app, jsonify
from flask_login import LoginManager, UserMixin
from itsdangerous import BadData, URLSafeTimedSerializer
from sqlalchemy import delete
from itsdangerous.encoding import base64_decode, base64_encode

from models import db, AuthSession

COOKIE_NAME = 'auth_token'
SESSION_SALT = 'auth-session'
AUTHENTICATED_CLAIMS = {'isAuthenticated': True}

login_manager = LoginManager()


class CredentialVerifier:
    """Compares submitted credentials with the configured admin pair."""

    def __init__(self, username, password):
        self._username = username or ''
        self._password = password or ''

    @classmethod
    def from_settings(cls, settings):
        return cls(settings.auth_username, settings.auth_password)

    def verify(self, username, password) -> bool:
        if not isinstance(username, str) or not isinstance(password, str):
            return False
        # Unconfigured credentials must never match an empty submission
        if not self._username or not self._password:
            return False
        user_ok = hmac.compare_digest(username.encode('utf-8'), self._username.encode('utf-8'))
        pass_ok = hmac.compare_digest(password.encode('utf-8'), self._password.encode('utf-8'))
        return user_ok and pass_ok


@dataclass(frozen=True)
class CookieSpec:
    name: str
    value: str
    max_age: int
    secure: bool = False
    httponly: bool = True
    samesite: str = 'Strict'

    def apply(self, response):
        response.set_cookie(
            self.name,
            self.value,
            max_age=self.max_age,
            path='/',
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )
        return response


class _CookieSessions:

    def __init__(self, settings):
        self.max_age = settings.session_max_age
        self.secure = settings.is_production

    def _cookie(self, value, max_age=None):
        return CookieSpec(
            COOKIE_NAME,
            value,
            self.max_age if max_age is None else max_age,
            secure=self.secure,
        )

    def _expired_cookie(self):
        return self._cookie('', max_age=0)


class SignedCookieSessions(_CookieSessions):
    """Stateless sessions: the claims travel in the cookie, signed with SECRET_KEY."""

    def __init__(self, settings):
        super().__init__(settings)
        self._serializer = URLSafeTimedSerializer(
            settings.secret_key,
            salt=SESSION_SALT,
            serializer_kwargs={'sort_keys': True},
        )

    def encode(self, claims) -> str:
        return self._serializer.dumps(claims)

    def decode(self, token):
        """Return the claims carried by token, or None when it is not valid."""
        if not token or not isinstance(token, str):
            return None
        try:
            _, signature = token.rsplit('.', 1)
            # Base64 tolerates junk in the trailing bits; only accept the canonical form
            if base64_encode(base64_decode(signature)) != signature.encode('ascii'):
                return None
            claims = self._serializer.loads(token, max_age=self.max_age)
        except (BadData, ValueError, UnicodeError):
            return None
        if not isinstance(claims, dict):
            return None
        return claims

    def issue(self):
        return self._cookie(self.encode(AUTHENTICATED_CLAIMS))

    def check(self, cookies) -> bool:
        claims = self.decode(cookies.get(COOKIE_NAME))
        return bool(claims) and claims.get('isAuthenticated') is True

    def clear(self, cookies=None):
        return self._expired_cookie()


class ServerSideSessions(_CookieSessions):
    """Opaque sessions: the cookie holds a random id, the claims live in auth_sessions."""

    def purge_expired(self, now=None):
        now = now or datetime.now(UTC)
        stmt = delete(AuthSession).where(AuthSession.expire <= now).execution_options(synchronize_session='fetch')
        removed = db.session.execute(stmt).rowcount
        if removed and removed > 0:
            logging.info(f'[AUTH] Purged {removed} expired sessions')
        return removed

    def issue(self):
        self.purge_expired()
        sid = secrets.token_urlsafe(32)
        row = AuthSession(
            sid=sid,
            data=json.dumps(AUTHENTICATED_CLAIMS, sort_keys=True),
            expire=datetime.now(UTC) + timedelta(seconds=self.max_age),
        )
        db.session.add(row)
        db.session.commit()
        return self._cookie(sid)

    def _load(self, cookies):
        sid = cookies.get(COOKIE_NAME)
        if not sid:
            return None
        row = db.session.get(AuthSession, sid)
        if row is None:
            return None
        if row.is_expired():
            db.session.delete(row)
            db.session.commit()
            return None
        return row

    def check(self, cookies) -> bool:
        row = self._load(cookies)
        return row is not None and row.claims.get('isAuthenticated') is True

    def clear(self, cookies=None):
        row = self._load(cookies) if cookies is not None else None
        if row is not None:
            db.session.delete(row)
            db.session.commit()
        return self._expired_cookie()


def build_session_backend(settings):
    if settings.session_backend == 'server':
        return ServerSideSessions(settings)
    if settings.session_backend != 'signed':
        logging.warning(f'[AUTH] Unknown AUTH_SESSION_BACKEND {settings.session_backend!r}, using signed cookies')
    return SignedCookieSessions(settings)


class AdminUser(UserMixin):
    """The only identity the app knows about."""
    id = 'admin'

    def get_id(self):
        return self.id


def get_sessions():
    return current_app.extensions['auth_sessions']


def get_credentials():
    return current_app.extensions['auth_credentials']


@login_manager.request_loader
def load_admin_from_request(request):
    if get_sessions().check(request.cookies):
        return AdminUser()
    return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'message': 'Unauthorized'}), 401


def init_auth(app, settings):
    """Attach credential verifier, session backend and Flask-Login to app."""
    app.extensions['auth_credentials'] = CredentialVerifier.from_settings(settings)
    app.extensions['auth_sessions'] = build_session_backend(settings)
    login_manager.init_app(app)
    if not settings.auth_username or not settings.auth_password:
        logging.warning('[AUTH] AUTH_USERNAME / AUTH_PASSWORD not set; admin login is disabled')
