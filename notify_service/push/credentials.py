"""Push provider credential resolution.

Three alternative sources are tried in order until one yields a complete
service account:

1. GCP_SA_KEY                       - JSON string or base64-encoded JSON
2. FIREBASE_PROJECT_ID / FIREBASE_CLIENT_EMAIL / FIREBASE_PRIVATE_KEY
3. GOOGLE_APPLICATION_CREDENTIALS   - path to a service account JSON file

Resolution runs once at startup; delivery never touches it.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Callable, Optional, Sequence

from .models import ServiceAccountCredentials

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("project_id", "client_email", "private_key")

CredentialStrategy = Callable[[object], Optional[ServiceAccountCredentials]]


def _normalize_private_key(key: str) -> str:
    # keys pasted into env files usually carry literal "\n"
    return key.replace("\\n", "\n")


def _from_service_account_dict(parsed: dict, source: str) -> Optional[ServiceAccountCredentials]:
    missing = [f for f in REQUIRED_FIELDS if not parsed.get(f)]
    if missing:
        logger.error(f"{source} missing required fields: {', '.join(missing)}")
        return None
    return ServiceAccountCredentials(
        project_id=parsed["project_id"],
        client_email=parsed["client_email"],
        private_key=_normalize_private_key(parsed["private_key"]),
        token_uri=parsed.get("token_uri") or ServiceAccountCredentials.token_uri,
    )


def parse_service_account_key(raw: str) -> Optional[ServiceAccountCredentials]:
    """Parse GCP_SA_KEY as raw JSON first, then as base64 JSON."""
    try:
        parsed = json.loads(raw)
    except ValueError:
        try:
            decoded = base64.b64decode(raw, validate=True).decode("utf-8")
            parsed = json.loads(decoded)
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            logger.error(f"Failed to parse GCP_SA_KEY: {e}")
            return None
    if not isinstance(parsed, dict):
        logger.error("GCP_SA_KEY is not a JSON object")
        return None
    return _from_service_account_dict(parsed, "GCP_SA_KEY")


def from_gcp_sa_key(cfg) -> Optional[ServiceAccountCredentials]:
    raw = getattr(cfg, "GCP_SA_KEY", None)
    if not raw:
        return None
    return parse_service_account_key(raw)


def from_firebase_fields(cfg) -> Optional[ServiceAccountCredentials]:
    project_id = getattr(cfg, "FIREBASE_PROJECT_ID", None)
    client_email = getattr(cfg, "FIREBASE_CLIENT_EMAIL", None)
    private_key = getattr(cfg, "FIREBASE_PRIVATE_KEY", None)
    if not (project_id and client_email and private_key):
        return None
    return ServiceAccountCredentials(
        project_id=project_id,
        client_email=client_email,
        private_key=_normalize_private_key(private_key),
    )


def from_credentials_file(cfg) -> Optional[ServiceAccountCredentials]:
    path = getattr(cfg, "GOOGLE_APPLICATION_CREDENTIALS", None)
    if not path:
        return None
    try:
        parsed = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"Failed to read GOOGLE_APPLICATION_CREDENTIALS ({path}): {e}")
        return None
    return _from_service_account_dict(parsed, "GOOGLE_APPLICATION_CREDENTIALS")


DEFAULT_STRATEGIES: tuple[tuple[str, CredentialStrategy], ...] = (
    ("GCP_SA_KEY", from_gcp_sa_key),
    ("individual Firebase credentials", from_firebase_fields),
    ("GOOGLE_APPLICATION_CREDENTIALS", from_credentials_file),
)


def resolve_credentials(
    cfg,
    strategies: Sequence[tuple[str, CredentialStrategy]] = DEFAULT_STRATEGIES,
) -> Optional[ServiceAccountCredentials]:
    for name, strategy in strategies:
        credentials = strategy(cfg)
        if credentials:
            logger.info(f"Push credentials resolved from {name}")
            return credentials
    return None
