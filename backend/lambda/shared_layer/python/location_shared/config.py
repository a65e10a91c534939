"""location_shared.config — Environment configuration and external config readers.

Environment variables are read at import time like the rest of the Lambda
fleet; values that are mandatory for a given code path are read lazily via
:func:`require_env` so a missing variable fails the invocation that needs it
rather than the import.

External configuration:
    AppConfig (application / environment / profile triple) — JSON documents
        holding either the place index map or the Snowflake warehouse info.
    Secrets Manager (SECRET_NAME) — Snowflake account, username, password.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from location_shared.aws_clients import AWS_REGION, _get_appconfigdata, _get_secretsmanager
from location_shared.errors import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

ENVIRONMENT = os.environ.get("ENVIRONMENT", "N/A")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
PLACE_INDEX_MAX_AGE_SECONDS = float(os.environ.get("PLACE_INDEX_MAX_AGE_SECONDS", "900"))
SNOWFLAKE_POOL_MAX = int(os.environ.get("SNOWFLAKE_POOL_MAX", "10"))

# The Grab data provider is only offered by Amazon Location in this region.
GRAB_REGION = "ap-southeast-1"

# AppConfig Data rejects poll intervals below 15 seconds.
_APPCONFIG_MIN_POLL_SECONDS = 15


def require_env(name: str) -> str:
    """Return a non-empty environment variable or raise ConfigurationError."""
    value = os.environ.get(name, "")
    if not value:
        logger.error(f"[ERROR] missing environment variable: {name}")
        raise ConfigurationError(f"missing environment variable: {name}")
    return value


def grab_supported(region: Optional[str] = None) -> bool:
    return (region or os.environ.get("AWS_REGION") or AWS_REGION) == GRAB_REGION


# ---------------------------------------------------------------------------
# AppConfig
# ---------------------------------------------------------------------------


class AppConfigReader:
    """Reads one freeform JSON profile through the AppConfig Data API.

    The configuration session is started on first use. AppConfig returns an
    empty body when the configuration has not changed since the previous
    poll, in which case the last document is returned again.
    """

    def __init__(
        self,
        application: Optional[str] = None,
        environment: Optional[str] = None,
        profile: Optional[str] = None,
        client=None,
    ) -> None:
        self._application = application
        self._environment = environment
        self._profile = profile
        self._client = client
        self._token: Optional[str] = None
        self._document: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()

    def _get_client(self):
        return self._client or _get_appconfigdata()

    def _start_session(self) -> str:
        resp = self._get_client().start_configuration_session(
            ApplicationIdentifier=self._application or require_env("APPCONFIG_APPLICATION_ID"),
            EnvironmentIdentifier=self._environment or require_env("APPCONFIG_ENVIRONMENT_ID"),
            ConfigurationProfileIdentifier=(
                self._profile or require_env("APPCONFIG_CONFIGURATION_PROFILE_ID")
            ),
            RequiredMinimumPollIntervalInSeconds=_APPCONFIG_MIN_POLL_SECONDS,
        )
        return resp["InitialConfigurationToken"]

    def get(self) -> Dict[str, Any]:
        """Poll AppConfig and return the current JSON document."""
        with self._lock:
            if self._token is None:
                self._token = self._start_session()

            try:
                resp = self._get_client().get_latest_configuration(ConfigurationToken=self._token)
            except ClientError:
                # A rejected token is dead; the next poll opens a new session.
                logger.warning("[WARNING] AppConfig poll failed; resetting configuration session")
                self._token = None
                raise
            self._token = resp.get("NextPollConfigurationToken") or self._token

            raw = resp.get("Configuration")
            if hasattr(raw, "read"):
                raw = raw.read()
            if raw:
                try:
                    document = json.loads(raw)
                except (json.JSONDecodeError, TypeError, UnicodeDecodeError) as exc:
                    raise ConfigurationError(f"AppConfig document is not valid JSON: {exc}") from exc
                if not isinstance(document, dict):
                    raise ConfigurationError("AppConfig document is not a JSON object")
                self._document = document
            elif self._document is None:
                raise ConfigurationError("AppConfig returned an empty configuration")

            return self._document


_appconfig_reader: Optional[AppConfigReader] = None


def _get_appconfig_reader() -> AppConfigReader:
    """Get (or create) the process-wide AppConfig reader."""
    global _appconfig_reader
    if _appconfig_reader is None:
        _appconfig_reader = AppConfigReader()
    return _appconfig_reader


# ---------------------------------------------------------------------------
# Snowflake connection settings
# ---------------------------------------------------------------------------


def get_snowflake_account_info(client=None) -> Dict[str, str]:
    """Read {account, username, password} from the Secrets Manager secret."""
    logger.info("[INFO] Getting Secrets Manager secret")
    sm = client or _get_secretsmanager()
    resp = sm.get_secret_value(SecretId=require_env("SECRET_NAME"))
    try:
        secret = json.loads(resp.get("SecretString") or "{}")
    except json.JSONDecodeError as exc:
        raise ConfigurationError("Snowflake secret is not valid JSON") from exc

    if not isinstance(secret, dict) or not all(
        secret.get(key) for key in ("account", "username", "password")
    ):
        logger.error("[ERROR] missing account info in Secrets Manager secret")
        raise ConfigurationError("missing account info in Secrets Manager secret")

    logger.info("[INFO] Got Secrets Manager secret")
    return {
        "account": secret["account"],
        "username": secret["username"],
        "password": secret["password"],
    }


def get_snowflake_warehouse_config(reader: Optional[AppConfigReader] = None) -> Dict[str, str]:
    """Read {warehouse, database} from AppConfig."""
    document = (reader or _get_appconfig_reader()).get()
    if not document.get("warehouse") or not document.get("database"):
        logger.error(f"[ERROR] missing database info in AppConfig: keys={sorted(document)}")
        raise ConfigurationError("missing database info in AppConfig")
    return {"warehouse": document["warehouse"], "database": document["database"]}
