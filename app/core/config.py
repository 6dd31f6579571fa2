import os
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


class Settings:
    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent.parent.parent
        self.APP_NAME: str = os.getenv("APP_NAME", "Audit Engine API")
        self.SQLALCHEMY_DATABASE_URI: str = os.getenv(
            "SQLALCHEMY_DATABASE_URI",
            f"sqlite:///{(base_dir / 'audit_engine.db').as_posix()}",
        )
        self.ENV: str = os.getenv("ENV", "development")

        self.SCORING_CONDITIONAL_MARGIN: float = float(os.getenv("SCORING_CONDITIONAL_MARGIN", "10"))
        self.SCORING_DEFAULT_PASSING_SCORE: float = float(os.getenv("SCORING_DEFAULT_PASSING_SCORE", "70"))
        self.SCORING_DEFAULT_MAX_SCORE: float = float(os.getenv("SCORING_DEFAULT_MAX_SCORE", "100"))
        self.ALLOW_OCCURRENCE_REOPEN: bool = _env_bool("ALLOW_OCCURRENCE_REOPEN", "false")
        self.SEED_DEFAULT_CATALOG: bool = _env_bool("SEED_DEFAULT_CATALOG", "true")

        default_cors = [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
        cors_origins = os.getenv("BACKEND_CORS_ORIGINS")
        self.BACKEND_CORS_ORIGINS: List[str] = (
            [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
            if cors_origins
            else default_cors
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
