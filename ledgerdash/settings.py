# ledgerdash/settings.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from ledgerdash import ledger_config as lc
from ledgerdash.errors import InvalidArgument


# --------------------
# Env helpers
# --------------------
def _env_str(env: Mapping[str, str], name: str, default: str = "") -> str:
    return (env.get(name) or default).strip()


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise InvalidArgument(f"{name} must be a number, got {raw!r}")


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    return (env.get(name) or "").strip().lower() in ("1", "true", "yes", "on")


def _env_list(env: Mapping[str, str], name: str) -> Tuple[str, ...]:
    raw = env.get(name) or ""
    return tuple(p.strip() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class Settings:
    stripe_secret_key: str = ""
    stripe_api_base: str = "https://api.stripe.com/v1"
    supabase_url: str = ""
    supabase_service_key: str = ""

    auth_domain: str = ""
    auth_roles_claim: str = "https://ledgerdash/roles"
    allowed_emails: Tuple[str, ...] = field(default_factory=tuple)
    required_role: str = ""
    auth_disabled: bool = False
    dev_owner_id: str = ""

    home_currency: str = lc.DEFAULT_CURRENCY
    conversion_rate: float = lc.DEFAULT_CONVERSION_RATE
    company_name: str = "XZ1 Recording Ventures"
    http_timeout: float = 20.0

    log_dir: str = "logs"
    log_level: str = "INFO"
    secret_key: str = "dev"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Read settings from the process environment (after loading ``.env``)
        or from an explicit mapping, which is what the tests pass in.
        """
        if env is None:
            load_dotenv()
            env = os.environ

        rate = _env_float(env, "CONVERSION_RATE", lc.DEFAULT_CONVERSION_RATE)
        if rate <= 0:
            raise InvalidArgument("CONVERSION_RATE must be positive")

        return cls(
            stripe_secret_key=_env_str(env, "STRIPE_SECRET_KEY"),
            stripe_api_base=_env_str(env, "STRIPE_API_BASE", cls.stripe_api_base).rstrip("/"),
            supabase_url=_env_str(env, "SUPABASE_URL").rstrip("/"),
            supabase_service_key=_env_str(env, "SUPABASE_SERVICE_ROLE_KEY"),
            auth_domain=_env_str(env, "AUTH_DOMAIN"),
            auth_roles_claim=_env_str(env, "AUTH_ROLES_CLAIM", cls.auth_roles_claim),
            allowed_emails=tuple(e.lower() for e in _env_list(env, "ALLOWED_EMAILS")),
            required_role=_env_str(env, "REQUIRED_ROLE"),
            auth_disabled=_env_flag(env, "AUTH_DISABLED"),
            dev_owner_id=_env_str(env, "DEV_OWNER_ID"),
            home_currency=_env_str(env, "HOME_CURRENCY", lc.DEFAULT_CURRENCY).upper(),
            conversion_rate=rate,
            company_name=_env_str(env, "COMPANY_NAME", cls.company_name),
            http_timeout=_env_float(env, "HTTP_TIMEOUT", cls.http_timeout),
            log_dir=_env_str(env, "LOG_DIR", cls.log_dir),
            log_level=_env_str(env, "LOG_LEVEL", cls.log_level).upper(),
            secret_key=_env_str(env, "SECRET_KEY", cls.secret_key),
        )


# --------------------
# Logging
# --------------------
def configure_logging(settings: Settings) -> None:
    """File log under LOG_DIR plus stderr; safe to call more than once."""
    logs_dir = Path(settings.log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s: %(message)s",
        handlers=[
            logging.FileHandler(logs_dir / "ledgerdash.log"),
            logging.StreamHandler(),
        ],
    )
