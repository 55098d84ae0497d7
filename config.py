"""Application configuration — environment variables and derived constants.

Loads ``MANAGER_BOT_TOKEN``, ``ADMIN_IDS``, ``DATABASE_PATH`` and the polling
and logging settings from the environment via ``python-dotenv``.  All values
are resolved at import time so ``main`` can ``from config import …``.
Library modules never import this file; they receive values as arguments.
"""

# ── stdlib ───────────────────────────────────────────────────────────────────
import os

# ── third-party ──────────────────────────────────────────────────────────────
from dotenv import load_dotenv

# ── core ─────────────────────────────────────────────────────────────────────
from core.logger import ForwardMeLogger

# ── Environment bootstrap ────────────────────────────────────────────────────
load_dotenv()

logger = ForwardMeLogger.get_logger()


# ── Helper functions (private) ───────────────────────────────────────────────


def _parse_ids(raw: str | None) -> list[int]:
    """Parse a comma-separated string of Telegram user IDs into a list of ints.

    Handles single IDs (e.g. ``"755764114"``) and comma-separated lists
    (e.g. ``"755764114,12345678"``).  Invalid tokens are skipped.
    """
    if not raw:
        return []
    result: list[int] = []
    for token in raw.split(","):
        token = token.strip()
        if token:
            try:
                result.append(int(token))
            except ValueError:
                logger.warning("Ignoring non-numeric admin ID", extra={"value": token})
    return result


def _parse_number(name: str, default: int) -> int:
    """Read a positive integer setting, falling back to *default* when unset or invalid."""
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid integer setting, using default", extra={"setting": name, "value": raw, "default": default})
        return default
    return value if value > 0 else default


# ── Public constants ─────────────────────────────────────────────────────────

MANAGER_BOT_TOKEN: str | None = os.environ.get("MANAGER_BOT_TOKEN")
ADMIN_IDS: list[int] = _parse_ids(os.environ.get("ADMIN_IDS"))
DATABASE_PATH: str = os.environ.get("DATABASE_PATH", "data/bots.db")
API_BASE_URL: str = os.environ.get("API_BASE_URL", "https://api.telegram.org")
POLL_TIMEOUT: int = _parse_number("POLL_TIMEOUT", 60)
POLL_RETRY_DELAY: int = _parse_number("POLL_RETRY_DELAY", 5)
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()


# ── Startup diagnostics ─────────────────────────────────────────────────────

if MANAGER_BOT_TOKEN:
    logger.info("Config loaded: MANAGER_BOT_TOKEN is set")
else:
    logger.warning("Config loaded: MANAGER_BOT_TOKEN is NOT set")

if ADMIN_IDS:
    logger.info("ADMIN_IDS loaded", extra={"admin_ids": ADMIN_IDS})

logger.info(
    "Relay settings resolved",
    extra={"database_path": DATABASE_PATH, "poll_timeout": POLL_TIMEOUT, "retry_delay": POLL_RETRY_DELAY, "log_level": LOG_LEVEL},
)
