import os
from typing import Dict, List, Mapping, Optional, Union

from dotenv import load_dotenv

REQUIRED_VARIABLES = ("MONGODB_URI", "AWS_ACCESS_KEY", "AWS_SECRET_KEY", "AWS_BUCKET")
DEFAULT_AWS_REGION = "eu-north-1"
DEFAULT_DATABASE_NAME = "storefront"


class ConfigurationError(RuntimeError):
    """Raised at startup when the environment cannot configure the service."""


def _read_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw_value = (environ.get(name) or "").strip()
    if not raw_value:
        return default
    try:
        return int(raw_value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {raw_value!r}")


def _read_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw_value = (environ.get(name) or "").strip().lower()
    if not raw_value:
        return default
    return raw_value in {"1", "true", "yes", "on"}


def _read_origins(environ: Mapping[str, str]) -> Union[str, List[str]]:
    raw_value = environ.get("CORS_ALLOWED_ORIGINS", "")
    origins = [origin.strip() for origin in raw_value.split(",") if origin.strip()]
    return origins or "*"


def load_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, object]:
    """Build the Flask config mapping from environment variables.

    When ``environ`` is omitted the process environment is used, after
    ``.env`` has been loaded into it.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    missing = [name for name in REQUIRED_VARIABLES if not (environ.get(name) or "").strip()]
    if missing:
        raise ConfigurationError(
            "Missing required configuration: " + ", ".join(sorted(missing))
        )

    return {
        "MONGO_URI": environ["MONGODB_URI"].strip(),
        "MONGO_DB_NAME": (environ.get("MONGODB_DB_NAME") or "").strip() or None,
        "AWS_ACCESS_KEY": environ["AWS_ACCESS_KEY"].strip(),
        "AWS_SECRET_KEY": environ["AWS_SECRET_KEY"].strip(),
        "AWS_BUCKET": environ["AWS_BUCKET"].strip(),
        "AWS_REGION": (environ.get("AWS_REGION") or "").strip() or DEFAULT_AWS_REGION,
        "PORT": _read_int(environ, "PORT", 5000),
        "MAX_CONTENT_LENGTH": _read_int(environ, "MAX_UPLOAD_SIZE_MB", 10) * 1024 * 1024,
        "BCRYPT_ROUNDS": _read_int(environ, "BCRYPT_ROUNDS", 10),
        "EXPOSE_ERROR_DETAILS": _read_bool(environ, "EXPOSE_ERROR_DETAILS", True),
        "CORS_ALLOWED_ORIGINS": _read_origins(environ),
        "LOG_LEVEL": (environ.get("LOG_LEVEL") or "INFO").strip().upper(),
    }
