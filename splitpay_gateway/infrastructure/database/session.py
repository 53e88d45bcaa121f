"""Firebase Realtime Database app management"""

import json
import os
import threading
from typing import Any, Dict

import firebase_admin
from firebase_admin import credentials, db

from splitpay_gateway.config import settings
from splitpay_gateway.domain.exceptions import ConfigurationError

APP_NAME = "splitpay-gateway"

_init_lock = threading.Lock()


def _service_account_info(raw: str) -> Dict[str, Any] | str:
    """Service account given either as inline JSON or as a path to a JSON file"""
    text = raw.strip()
    if text.startswith("{"):
        return json.loads(text)
    return text


def get_firebase_app() -> firebase_admin.App:
    """
    Initialize the Firebase app on first use.

    Raises:
        ConfigurationError: When credentials or the database URL are missing or unusable
    """
    with _init_lock:
        try:
            return firebase_admin.get_app(APP_NAME)
        except ValueError:
            pass

        if not settings.firebase_service_account:
            raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT is not configured.")
        if not settings.firebase_database_url:
            raise ConfigurationError("FIREBASE_DATABASE_URL is not configured.")

        try:
            info = _service_account_info(settings.firebase_service_account)
        except ValueError as e:
            raise ConfigurationError(f"FIREBASE_SERVICE_ACCOUNT is not valid JSON: {e}") from e
        if isinstance(info, str) and not os.path.exists(info):
            raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT is neither JSON nor an existing file.")

        try:
            return firebase_admin.initialize_app(
                credentials.Certificate(info),
                {"databaseURL": settings.firebase_database_url},
                name=APP_NAME,
            )
        except (ValueError, OSError) as e:
            raise ConfigurationError(f"Firebase credentials are unusable: {e}") from e


def get_reference(path: str) -> db.Reference:
    """Database reference bound to this service's Firebase app"""
    return db.reference(path, app=get_firebase_app())
