# oauthgate/core/config.py
import os
from urllib.parse import quote_plus

from dotenv import load_dotenv


def str_to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def merge_unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in items:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


class Settings:
    def __init__(self) -> None:
        # Only load .env for local/dev. In prod, env vars come from the service config.
        self.ENV = os.getenv("ENV", "dev").strip().lower()  # dev | prod
        if self.ENV != "prod":
            load_dotenv()

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

        # ----------------------------
        # Database
        # ----------------------------
        self.DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
        self.DB_HOST = os.getenv("DB_HOST", "")
        self.DB_PORT = os.getenv("DB_PORT", "5432")
        self.DB_NAME = os.getenv("DB_NAME", "")
        self.DB_APP_USER = os.getenv("DB_APP_USER", "")
        self.DB_APP_PASSWORD = os.getenv("DB_APP_PASSWORD", "")
        self.DB_MIGRATOR_USER = os.getenv("DB_MIGRATOR_USER", "")
        self.DB_MIGRATOR_PASSWORD = os.getenv("DB_MIGRATOR_PASSWORD", "")
        self.DB_SSLMODE = os.getenv("DB_SSLMODE", "require").strip().lower()
        self.DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
        self.DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "5"))
        self.DB_CONNECT_TIMEOUT = int(os.getenv("DB_CONNECT_TIMEOUT", "10"))

        # ----------------------------
        # Remote OAuth 1.0a provider
        # ----------------------------
        self.REMOTE_API_BASE_URL = os.getenv("REMOTE_API_BASE_URL", "https://api.schoology.com/v1/").strip()
        if not self.REMOTE_API_BASE_URL.endswith("/"):
            # urljoin drops the last path segment without a trailing slash
            self.REMOTE_API_BASE_URL += "/"
        self.REMOTE_CONSUMER_KEY = os.getenv("REMOTE_CONSUMER_KEY", "")
        self.REMOTE_CONSUMER_SECRET = os.getenv("REMOTE_CONSUMER_SECRET", "")
        self.REMOTE_API_TIMEOUT_SECONDS = float(os.getenv("REMOTE_API_TIMEOUT_SECONDS", "10"))

        # ----------------------------
        # Sessions / expiry sweeper
        # ----------------------------
        self.SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "30"))
        self.EXPIRY_SWEEP_INTERVAL_SECONDS = int(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "300"))
        self.CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "").strip()

        # ----------------------------
        # HTTP
        # ----------------------------
        dev_defaults = [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]

        cors_from_env = parse_csv(os.getenv("CORS_ORIGINS"))
        if self.ENV == "prod":
            self.CORS_ORIGINS = merge_unique(cors_from_env)
        else:
            self.CORS_ORIGINS = merge_unique(cors_from_env + dev_defaults)

        # Behind a load balancer the peer address is the proxy; the first X-Forwarded-For hop is the client.
        self.TRUST_FORWARDED_FOR = str_to_bool(os.getenv("TRUST_FORWARDED_FOR"), default=True)

        self._validate_prod()

    def _validate_prod(self) -> None:
        if self.ENV != "prod":
            return

        missing: list[str] = []

        if not self.REMOTE_CONSUMER_KEY:
            missing.append("REMOTE_CONSUMER_KEY")
        if not self.REMOTE_CONSUMER_SECRET:
            missing.append("REMOTE_CONSUMER_SECRET")

        if not self.DATABASE_URL:
            if not self.DB_HOST:
                missing.append("DB_HOST")
            if not self.DB_NAME:
                missing.append("DB_NAME")
            if not self.DB_APP_USER:
                missing.append("DB_APP_USER")
            if not self.DB_APP_PASSWORD:
                missing.append("DB_APP_PASSWORD")
            if self.DB_SSLMODE != "require":
                raise RuntimeError("DB_SSLMODE must be 'require' in prod")

        if not self.CORS_ORIGINS:
            missing.append("CORS_ORIGINS")

        cors_joined = ",".join(self.CORS_ORIGINS)
        if "localhost" in cors_joined or "127.0.0.1" in cors_joined:
            raise RuntimeError("CORS_ORIGINS contains localhost/dev origins in prod")

        if not self.REMOTE_API_BASE_URL.startswith("https://"):
            raise RuntimeError("REMOTE_API_BASE_URL should be https://... in prod")

        if missing:
            raise RuntimeError(f"Missing required prod env vars: {', '.join(missing)}")

    @property
    def is_prod(self) -> bool:
        return self.ENV == "prod"

    def _build_database_url(self, user: str, password: str) -> str:
        encoded_password = quote_plus(password)
        return (
            f"postgresql+psycopg2://{user}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            f"?sslmode={self.DB_SSLMODE}"
        )

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if not self.DB_HOST:
            # Local dev without Postgres
            return "sqlite:///./oauthgate.db"
        return self._build_database_url(self.DB_APP_USER, self.DB_APP_PASSWORD)

    @property
    def migrations_database_url(self) -> str:
        if self.DATABASE_URL or not self.DB_HOST:
            return self.database_url
        return self._build_database_url(self.DB_MIGRATOR_USER, self.DB_MIGRATOR_PASSWORD)


settings = Settings()


def require_remote_credentials() -> None:
    if not settings.REMOTE_CONSUMER_KEY or not settings.REMOTE_CONSUMER_SECRET:
        raise RuntimeError("REMOTE_CONSUMER_KEY and REMOTE_CONSUMER_SECRET must be set")
