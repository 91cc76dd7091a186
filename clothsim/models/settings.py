"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_DIR = Path(__file__).resolve().parents[2]
_ENV_FILE = _PROJECT_DIR / ".env"

def _expand_origin(value: str) -> list[str]:
    origin = value.rstrip("/")
    if origin in {"http://localhost", "http://127.0.0.1"}:
        return [f"{origin}:3000", origin]
    return [origin]


class Settings(BaseSettings):
    # ===== Core =====
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # ===== Stepping =====
    TARGET_DT_S: float = Field(1.0 / 60.0, gt=0.0)  # fixed step, one per due frame
    GRAVITY_M_S2: float = 9.8
    GRAVITY_SCALE: float = 0.1  # cloth is a unit square, so gravity is scaled down

    # ===== Cloth defaults (used when a session is created without overrides) =====
    CLOTH_PARTICLES_X: int = Field(10, ge=2)
    CLOTH_PARTICLES_Y: int = Field(10, ge=2)
    CLOTH_MAX_PARTICLES_PER_AXIS: int = Field(64, ge=2)  # safety limit for the HTTP surface

    # ===== Solver defaults =====
    SOLVER_ITERATION_COUNT: int = Field(2, ge=1)
    SOLVER_STIFFNESS: float = Field(5000.0, gt=0.0)
    SOLVER_MODE: str = "gauss_seidel"  # "gauss_seidel" | "jacobi"
    SOLVER_WARM_START: bool = True
    SOLVER_ETA: float = Field(1.0, ge=0.0, le=1.0)
    SOLVER_DAMPING: float = Field(0.6, ge=0.0, le=1.0)
    SOLVER_JACOBI_RELAXATION: float = Field(0.6, ge=0.0, le=1.0)

    # ===== Headless runs =====
    RUN_MAX_DURATION_S: float = Field(30.0, gt=0.0)

    # ===== Frontend & CORS =====
    FRONTEND_ORIGIN: str | None = Field(
        default=None, validation_alias="FRONTEND_ORIGIN"
    )
    CORS_ALLOW_ORIGINS: list[str] = Field(default_factory=list)

    model_config = SettingsConfigDict(env_file=_ENV_FILE, extra="ignore")

    @field_validator("CORS_ALLOW_ORIGINS", mode="before")
    @classmethod
    def _populate_cors(cls, value: list[str] | None, info: ValidationInfo) -> list[str]:
        origins: list[str] = []

        if value:
            for origin in value:
                origins.extend(_expand_origin(origin))

        frontend_origin = info.data.get("FRONTEND_ORIGIN") if info.data else None
        if isinstance(frontend_origin, str) and frontend_origin.strip():
            origins.extend(_expand_origin(frontend_origin))

        return list(dict.fromkeys(origins)) or _expand_origin("http://localhost:3000")

    @field_validator("SOLVER_MODE")
    @classmethod
    def _check_mode(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"gauss_seidel", "jacobi"}:
            raise ValueError("SOLVER_MODE must be 'gauss_seidel' or 'jacobi'")
        return value


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()


settings = get_settings()
