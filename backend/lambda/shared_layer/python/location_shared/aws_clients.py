"""location_shared.aws_clients — boto3 clients used by the location proxy.

``_get_location`` serves place index searches, ``_get_appconfigdata`` reads
the place index and warehouse profiles, and ``_get_secretsmanager`` fetches
the Snowflake login. Each client is built on first use and reused for the
life of the container.
"""

from __future__ import annotations

import os
from typing import Optional

import boto3
from botocore.config import Config

# ---------------------------------------------------------------------------
# Default region (overridable via env)
# ---------------------------------------------------------------------------

AWS_REGION: str = os.environ.get("AWS_REGION", "us-east-1")

# ---------------------------------------------------------------------------
# Client singletons
# ---------------------------------------------------------------------------

_location = None
_appconfigdata = None
_secretsmanager = None


def _get_location(region: Optional[str] = None):
    """Get (or create) the Amazon Location Service client singleton."""
    global _location
    if _location is None:
        _location = boto3.client(
            "location",
            region_name=region or AWS_REGION,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
    return _location


def _get_appconfigdata(region: Optional[str] = None):
    """Get (or create) the AppConfig Data client singleton."""
    global _appconfigdata
    if _appconfigdata is None:
        _appconfigdata = boto3.client(
            "appconfigdata",
            region_name=region or AWS_REGION,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
    return _appconfigdata


def _get_secretsmanager(region: Optional[str] = None):
    """Get (or create) the Secrets Manager client singleton."""
    global _secretsmanager
    if _secretsmanager is None:
        _secretsmanager = boto3.client(
            "secretsmanager",
            region_name=region or AWS_REGION,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
    return _secretsmanager
