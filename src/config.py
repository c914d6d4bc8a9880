"""Centralized configuration for the clinic inquiry service.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/clinic-inquiry/<VARIABLE_NAME>``.
Engine thresholds and clinic contact details are gathered into a single
immutable ``EngineSettings`` value (``ENGINE_SETTINGS``).
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from src.core.settings import EngineSettings

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415 (lazy import to avoid boto3 dep in tests)

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/clinic-inquiry/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /clinic-inquiry/{name} (AWS)."
    )


def _optional_secret(name: str) -> str:
    """Like ``_require_env`` but an unset value is simply empty."""
    value = os.getenv(name, "").strip()
    if value:
        return value
    if _ON_AWS:
        return _get_ssm_parameter(name) or ""
    return ""


# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-sonnet-4-5")
# Knowledge summarization is a short, grounded rewrite: the cheap model is enough.
FAST_MODEL_NAME: str = os.getenv("FAST_MODEL_NAME", "claude-haiku-4-5")

# ── Item store (spreadsheet web app) ────────────────────────────────
STORE_FAQ_URL: str = os.getenv("STORE_FAQ_URL", "").strip()
STORE_KNOWLEDGE_URL: str = os.getenv("STORE_KNOWLEDGE_URL", "").strip()
STORE_LOG_URL: str = os.getenv("STORE_LOG_URL", "").strip()
STORE_TOKEN: str = _optional_secret("STORE_TOKEN")
STORE_TIMEOUT_SECONDS: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "10"))
CACHE_TTL_SECONDS: float = float(os.getenv("CACHE_TTL_SECONDS", "600"))
LOG_TIMEOUT_SECONDS: float = float(os.getenv("LOG_TIMEOUT_SECONDS", "8"))

# ── Engine ──────────────────────────────────────────────────────────
ENGINE_SETTINGS = EngineSettings(
    booking_url=os.getenv("CLINIC_BOOKING_URL", EngineSettings.booking_url),
    phone=os.getenv("CLINIC_PHONE", EngineSettings.phone),
)

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
ALLOWED_ORIGINS: list[str] = [
    o.strip().lower()
    for o in os.getenv("ALLOWED_ORIGINS", "https://373minamidc.github.io").split(",")
    if o.strip()
]
