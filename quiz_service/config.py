import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off", "")


def _get_int(name: str, default: int, minimum: int = 1) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        val = int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}")
    if val < minimum:
        raise RuntimeError(f"Environment variable {name} must be at least {minimum}, got {val}")
    return val


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise RuntimeError(f"Environment variable {name} must be a boolean, got {raw!r}")


def cors_origins_from(value: str | None) -> tuple[str, ...]:
    """
    Comma separated allow-list for the browser client. A wildcard anywhere in
    the list, or no list at all, opens CORS to every origin.
    """
    origins = tuple(dict.fromkeys(part.strip().rstrip("/") for part in (value or "").split(",")))
    origins = tuple(o for o in origins if o)
    if not origins or "*" in origins:
        return ("*",)
    return origins


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./quiz.db"
    quiz_duration_seconds: int = 7200  # 2 hours
    violation_threshold: int = 10
    enforce_violation_submit: bool = False
    # how long after the deadline a submit may still carry buffered answers
    final_answer_grace_seconds: int = 15
    cors_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        database_url=(os.getenv("DATABASE_URL") or "sqlite:///./quiz.db").strip(),
        quiz_duration_seconds=_get_int("QUIZ_DURATION_SECONDS", 7200),
        violation_threshold=_get_int("VIOLATION_THRESHOLD", 10),
        enforce_violation_submit=_get_bool("ENFORCE_VIOLATION_SUBMIT", False),
        final_answer_grace_seconds=_get_int("FINAL_ANSWER_GRACE_SECONDS", 15, minimum=0),
        cors_origins=cors_origins_from(os.getenv("CORS_ORIGINS")),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
    )
