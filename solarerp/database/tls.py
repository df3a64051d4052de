"""TLS connect arguments for asyncpg connections to managed Postgres."""

import logging
import ssl
from pathlib import Path

from solarerp.config import settings

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


def normalize_pem(value: str | None) -> str | None:
    """Accept PEM text with literal ``\\n`` sequences or real newlines."""
    if not value:
        return None
    return value.replace("\\n", "\n").strip()


def resolve_ca_path(raw_path: str) -> Path:
    """Resolve a CA path relative to the project root, so the cwd does not matter."""
    path = Path(raw_path)
    if path.is_absolute():
        return path
    return (_PROJECT_ROOT / raw_path.removeprefix("./")).resolve()


def _load_ca() -> str | None:
    if settings.db_ssl_ca:
        return normalize_pem(settings.db_ssl_ca)
    raw = settings.db_ssl_ca_path.strip()
    if not raw:
        return None
    if "-----BEGIN" in raw:
        return normalize_pem(raw)
    try:
        return resolve_ca_path(raw).read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not read DB_SSL_CA_PATH (%s); falling back to unverified TLS", exc)
        return None


def build_tls_connect_args(use_ssl: bool) -> dict:
    """Return ``connect_args`` for ``create_async_engine``.

    With a CA available the server certificate is verified; without one TLS is
    still required but the certificate is not checked.
    """
    if not use_ssl:
        return {}
    ca = _load_ca()
    if ca:
        context = ssl.create_default_context(cadata=ca)
    else:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return {"ssl": context}
