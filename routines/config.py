from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from routines.domain.enums import Role

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Operator:
    actor_id: str
    role: Role = Role.ADMINISTRATOR


def parse_operator_keys(raw: str) -> dict[str, Operator]:
    """Parse ``actor:role:key`` entries into a key -> operator mapping.

    ``actor:key`` (no recognised role) names an administrador.
    """
    keys: dict[str, Operator] = {}
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk or ":" not in chunk:
            continue
        actor_id, rest = (part.strip() for part in chunk.split(":", 1))
        role, key = Role.ADMINISTRATOR, rest
        role_name, sep, remainder = rest.partition(":")
        if sep:
            try:
                role, key = Role(role_name.strip()), remainder.strip()
            except ValueError:
                pass
        if actor_id and key:
            keys[key] = Operator(actor_id, role)
    return keys


@dataclass(frozen=True)
class Settings:
    database_url: str
    service_name: str = "routines"
    log_level: str = "INFO"
    log_dir: str = "logs"
    operating_timezone: str = "America/Bogota"
    scheduler_secret: str | None = None
    operator_keys: dict[str, Operator] = field(default_factory=dict)
    default_gps_radius_m: int = 100


def load_settings() -> Settings:
    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")

    return Settings(
        database_url=database_url,
        service_name=os.getenv("SERVICE_NAME", "").strip() or "routines",
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "logs"),
        operating_timezone=os.getenv("OPERATING_TIMEZONE", "").strip() or "America/Bogota",
        scheduler_secret=os.getenv("SCHEDULER_SECRET", "").strip() or None,
        operator_keys=parse_operator_keys(os.getenv("OPERATOR_KEYS", "")),
        default_gps_radius_m=int(os.getenv("DEFAULT_GPS_RADIUS_M", "100")),
    )


load_env()
SETTINGS = load_settings()
