"""
Runtime configuration for the training traceability service.

Settings are read from the environment once at startup and handed to the
application factory; components receive the same immutable object instead of
reading os.environ on their own.
"""
import os
from dataclasses import dataclass, replace
from typing import Optional

from database import normalize_pg_url_for_sqlalchemy

SESSION_MAX_AGE = 7 * 24 * 60 * 60
DEFAULT_DOMAIN = 'localhost:5000'


def _env_flag(name: str, default: str = '0') -> bool:
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class Settings:
    secret_key: str = 'change-this-secret'
    database_url: str = 'sqlite:///training_trace.db'
    auth_username: str = ''
    auth_password: str = ''
    environment: str = 'development'
    app_domain: str = DEFAULT_DOMAIN
    vercel: bool = False
    session_backend: str = 'signed'
    session_max_age: int = SESSION_MAX_AGE
    certificate_template_path: Optional[str] = None
    max_upload_mb: int = 10
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Settings':
        """Build settings from environment variables.

        The public domain follows APP_DOMAIN, then the platform provided
        VERCEL_URL / VERCEL_BRANCH_URL, then localhost.
        """
        domain = (
            os.environ.get('APP_DOMAIN')
            or os.environ.get('VERCEL_URL')
            or os.environ.get('VERCEL_BRANCH_URL')
            or DEFAULT_DOMAIN
        )
        database_url = os.environ.get('DATABASE_URL') or 'sqlite:///training_trace.db'
        return cls(
            secret_key=os.environ.get('SECRET_KEY') or os.environ.get('SESSION_SECRET') or 'change-this-secret',
            database_url=normalize_pg_url_for_sqlalchemy(database_url),
            auth_username=os.environ.get('AUTH_USERNAME', ''),
            auth_password=os.environ.get('AUTH_PASSWORD', ''),
            environment=(os.environ.get('ENVIRONMENT') or os.environ.get('FLASK_ENV') or 'development').lower(),
            app_domain=domain,
            vercel=_env_flag('VERCEL'),
            session_backend=os.environ.get('AUTH_SESSION_BACKEND', 'signed').lower(),
            certificate_template_path=os.environ.get('CERTIFICATE_TEMPLATE_PATH') or None,
            max_upload_mb=int(os.environ.get('MAX_UPLOAD_MB', '10')),
            log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
        )

    @property
    def is_production(self) -> bool:
        return self.environment == 'production'

    @property
    def public_protocol(self) -> str:
        return 'https' if (self.is_production or self.vercel) else 'http'

    @property
    def verification_base_url(self) -> str:
        return f'{self.public_protocol}://{self.app_domain}/verify'

    def with_overrides(self, **values) -> 'Settings':
        return replace(self, **values)
