import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: str) -> list[str]:
    return [o.strip() for o in os.getenv(name, default).split(",") if o.strip()]


def _database_url(data_dir: Path) -> str:
    """DATABASE_URL wins; otherwise compose a PostgreSQL URL from DB_* parts."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    host = os.getenv("DB_HOST")
    if host:
        port = os.getenv("DB_PORT", "5432")
        user = os.getenv("DB_USERNAME", "postgres")
        password = os.getenv("DB_PASSWORD", "postgres")
        name = os.getenv("DB_NAME", "fuel_ledger")
        return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"
    return f"sqlite+aiosqlite:///{data_dir / 'fuel_ledger.db'}"


@dataclass(frozen=True)
class Settings:
    """Application settings, built once at startup and passed around explicitly."""

    APP_NAME: str = "Fuel Ledger & Revenue Monitoring"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    DATA_DIR: Path = Path(__file__).resolve().parent.parent / "data"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"
    DB_AUTO_CREATE: bool = True

    # Auth
    JWT_SECRET: str = "dev-secret-change-in-prod"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TTL_SECONDS: int = 86400
    JWT_REFRESH_TTL_SECONDS: int = 604800

    # CORS
    ALLOWED_ORIGINS: list[str] = field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost"]
    )

    # Reporting day boundaries
    APP_TIMEZONE: str = "Asia/Makassar"

    # Spreadsheet ingestion
    GOOGLE_SHEETS_ENABLED: bool = False
    GOOGLE_SPREADSHEET_ID: str = ""
    GOOGLE_SHEETS_CREDENTIALS_FILE: str = ""
    GOOGLE_SHEETS_CLIENT_EMAIL: str = ""
    GOOGLE_SHEETS_PRIVATE_KEY: str = ""
    GOOGLE_SHEETS_SYNC_INTERVAL: int = 60

    # Bootstrap
    SEED_DEFAULT_DATA: bool = True
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_EMAIL: str = "admin@example.com"
    DEFAULT_ADMIN_PASSWORD: str = "password123"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the environment (and a local .env file)."""
        load_dotenv()
        data_dir = Path(os.getenv("DATA_DIR", str(cls.DATA_DIR)))
        return cls(
            APP_NAME=os.getenv("APP_NAME", cls.APP_NAME),
            APP_VERSION=os.getenv("APP_VERSION", cls.APP_VERSION),
            DEBUG=_env_bool("DEBUG", "false"),
            DATA_DIR=data_dir,
            DATABASE_URL=_database_url(data_dir),
            DB_AUTO_CREATE=_env_bool("DB_AUTO_CREATE", "true"),
            JWT_SECRET=os.getenv("JWT_SECRET", cls.JWT_SECRET),
            JWT_ALGORITHM=os.getenv("JWT_ALGORITHM", cls.JWT_ALGORITHM),
            JWT_ACCESS_TTL_SECONDS=_env_int("JWT_ACCESS_TTL_SECONDS", 86400),
            JWT_REFRESH_TTL_SECONDS=_env_int("JWT_REFRESH_TTL_SECONDS", 604800),
            ALLOWED_ORIGINS=_env_list(
                "ALLOWED_ORIGINS", "http://localhost:5173,http://localhost"
            ),
            APP_TIMEZONE=os.getenv("APP_TIMEZONE", cls.APP_TIMEZONE),
            GOOGLE_SHEETS_ENABLED=_env_bool("GOOGLE_SHEETS_ENABLED", "false"),
            GOOGLE_SPREADSHEET_ID=os.getenv("GOOGLE_SPREADSHEET_ID", ""),
            GOOGLE_SHEETS_CREDENTIALS_FILE=os.getenv(
                "GOOGLE_SHEETS_CREDENTIALS_FILE", ""
            ),
            GOOGLE_SHEETS_CLIENT_EMAIL=os.getenv("GOOGLE_SHEETS_CLIENT_EMAIL", ""),
            GOOGLE_SHEETS_PRIVATE_KEY=os.getenv("GOOGLE_SHEETS_PRIVATE_KEY", ""),
            GOOGLE_SHEETS_SYNC_INTERVAL=_env_int("GOOGLE_SHEETS_SYNC_INTERVAL", 60),
            SEED_DEFAULT_DATA=_env_bool("SEED_DEFAULT_DATA", "true"),
            DEFAULT_ADMIN_USERNAME=os.getenv(
                "DEFAULT_ADMIN_USERNAME", cls.DEFAULT_ADMIN_USERNAME
            ),
            DEFAULT_ADMIN_EMAIL=os.getenv("DEFAULT_ADMIN_EMAIL", cls.DEFAULT_ADMIN_EMAIL),
            DEFAULT_ADMIN_PASSWORD=os.getenv(
                "DEFAULT_ADMIN_PASSWORD", cls.DEFAULT_ADMIN_PASSWORD
            ),
            HOST=os.getenv("HOST", cls.HOST),
            PORT=_env_int("PORT", 3000),
        )
