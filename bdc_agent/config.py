from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_LOGIN_URL = "https://www.vinsolutions.com/"
DEFAULT_INVENTORY_URL = (
    "https://vinsolutions.app.coxautoinc.com/vinconnect/#/CarDashboard/"
    "ploader.aspx?TargetControl=Inventory/autosp.ascx&SelectedTab=t_Inventory"
)
DEFAULT_DB_PATH = Path("data") / "inventory.db"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the sync job and the HTTP service."""

    vin_username: str
    vin_password: str
    vin_login_url: str
    vin_inventory_url: str
    vin_logged_in_selector: Optional[str]
    openai_api_key: str
    openai_model: str
    openai_timeout: float
    agent_bearer: str
    db_path: Path
    port: int
    chromium_executable_path: Optional[str]
    headless: bool
    allowed_origins: List[str]
    log_level: str

    def require_vin_credentials(self) -> None:
        if not self.vin_username or not self.vin_password:
            raise ConfigError(
                "VIN_USERNAME and VIN_PASSWORD must be set in environment variables"
            )

    def require_openai_key(self) -> None:
        if not self.openai_api_key:
            raise ConfigError("OPENAI_API_KEY is not configured")

    def require_agent_bearer(self) -> None:
        if not self.agent_bearer:
            raise ConfigError("AGENT_BEARER is not configured")


def db_path_from_url(url: str) -> Path:
    """
    Accept either a plain file path or a ``sqlite:///`` URL.

        sqlite:///data/inventory.db   -> data/inventory.db
        sqlite:////var/lib/inv.db     -> /var/lib/inv.db
    """
    if url.startswith("sqlite:///"):
        return Path(url[len("sqlite:///"):])
    if "://" in url:
        raise ConfigError(f"Unsupported DATABASE_URL scheme: {url.split('://', 1)[0]}")
    return Path(url)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Build Settings from environment variables. A ``.env`` file in the working
    directory (or ``env_file``) is loaded first without overriding variables
    already present in the process environment.
    """
    load_dotenv(env_file or Path(".env"), override=False)

    origins_raw = os.getenv("BDC_ALLOWED_ORIGINS", "*")
    origins = [origin.strip() for origin in origins_raw.split(",") if origin.strip()]

    return Settings(
        vin_username=os.getenv("VIN_USERNAME", ""),
        vin_password=os.getenv("VIN_PASSWORD", ""),
        vin_login_url=os.getenv("VIN_LOGIN_URL") or DEFAULT_LOGIN_URL,
        vin_inventory_url=os.getenv("VIN_INVENTORY_URL") or DEFAULT_INVENTORY_URL,
        vin_logged_in_selector=os.getenv("VIN_LOGGED_IN_SELECTOR") or None,
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        openai_timeout=float(os.getenv("OPENAI_TIMEOUT", "12")),
        agent_bearer=os.getenv("AGENT_BEARER", ""),
        db_path=db_path_from_url(os.getenv("DATABASE_URL") or str(DEFAULT_DB_PATH)),
        port=int(os.getenv("PORT", "3000")),
        chromium_executable_path=os.getenv("CHROMIUM_EXECUTABLE_PATH")
        or os.getenv("PUPPETEER_EXECUTABLE_PATH")
        or None,
        headless=_env_flag("HEADLESS", True),
        allowed_origins=origins or ["*"],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def init_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
