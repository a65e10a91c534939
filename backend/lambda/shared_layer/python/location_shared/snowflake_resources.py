"""location_shared.snowflake_resources — API integration and external functions.

Statement texts for the Snowflake objects that route queries to the proxy:

    API INTEGRATION <name>       trust relationship with the API Gateway role
    EXTERNAL FUNCTION ...        one per operation/provider pair

The Grab functions exist only in the region where Amazon Location offers the
Grab provider; the choice is made once from AWS_REGION, not per call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from snowflake.connector.errors import ProgrammingError

from location_shared.config import grab_supported
from location_shared.errors import ProvisioningError
from location_shared.snowflake_client import SnowflakeClient, get_snowflake_client

logger = logging.getLogger(__name__)

# Snowflake "Object does not exist or not authorized."
_OBJECT_DOES_NOT_EXIST = 2003

_REVERSE_GEOCODE_SIGNATURE = "(lng FLOAT, lat FLOAT)"
_REVERSE_GEOCODE_ARG_TYPES = "(FLOAT, FLOAT)"
_GEOCODE_SIGNATURE = "(address VARCHAR)"
_GEOCODE_ARG_TYPES = "(VARCHAR)"

_BASE_PROVIDERS = ("here", "esri")
_GRAB_PROVIDER = "grab"


@dataclass(frozen=True)
class IntegrationDescriptor:
    integration_name: str
    role_arn: str
    allowed_prefix: str
    iam_user_arn: str
    external_id: str


def _providers(region: Optional[str] = None) -> List[str]:
    providers = list(_BASE_PROVIDERS)
    if grab_supported(region):
        providers.append(_GRAB_PROVIDER)
    return providers


def external_function_names(region: Optional[str] = None) -> List[str]:
    names = []
    for provider in _providers(region):
        names.append(f"reverse_geocode_amazon_location_service_provider_{provider}")
        names.append(f"geocode_amazon_location_service_provider_{provider}")
    return names


def create_external_function_statements(
    integration_name: str, api_base_url: str, region: Optional[str] = None
) -> List[str]:
    statements = []
    for name in external_function_names(region):
        signature = _REVERSE_GEOCODE_SIGNATURE if name.startswith("reverse") else _GEOCODE_SIGNATURE
        statements.append(
            f"CREATE OR REPLACE EXTERNAL FUNCTION {name}{signature}\n"
            f"  RETURNS VARIANT\n"
            f"  API_INTEGRATION = {integration_name}\n"
            f"  AS '{api_base_url}';"
        )
    return statements


def drop_external_function_statements(region: Optional[str] = None) -> List[str]:
    statements = []
    for name in external_function_names(region):
        arg_types = _REVERSE_GEOCODE_ARG_TYPES if name.startswith("reverse") else _GEOCODE_ARG_TYPES
        statements.append(f"DROP FUNCTION IF EXISTS {name}{arg_types};")
    return statements


def _is_missing_object(exc: ProgrammingError) -> bool:
    return exc.errno == _OBJECT_DOES_NOT_EXIST or "does not exist" in str(exc).lower()


# ---------------------------------------------------------------------------
# API integration
# ---------------------------------------------------------------------------


def create_api_integration(
    integration_name: str,
    api_aws_role_arn: str,
    api_allowed_prefix: str,
    client: Optional[SnowflakeClient] = None,
) -> None:
    logger.info(f"[START] Creating API integration {integration_name}")
    (client or get_snowflake_client()).execute_statement(
        f"CREATE OR REPLACE API INTEGRATION {integration_name}\n"
        f"  api_provider = aws_api_gateway\n"
        f"  api_aws_role_arn = '{api_aws_role_arn}'\n"
        f"  api_allowed_prefixes = ('{api_allowed_prefix}')\n"
        f"  enabled = true"
    )
    logger.info(f"[INFO] API integration {integration_name} created")


def delete_api_integration(integration_name: str, client: Optional[SnowflakeClient] = None) -> None:
    """Drop the integration; an integration that is already gone is not an error."""
    logger.info(f"[START] Deleting API integration {integration_name}")
    try:
        (client or get_snowflake_client()).execute_statement(
            f"DROP API INTEGRATION IF EXISTS {integration_name}"
        )
    except ProgrammingError as exc:
        if not _is_missing_object(exc):
            raise
        logger.info(f"[INFO] API integration {integration_name} already absent")
        return
    logger.info(f"[INFO] API integration {integration_name} deleted")


def update_api_integration(
    integration_name: str,
    api_aws_role_arn: str,
    api_allowed_prefix: str,
    physical_resource_id: str,
    client: Optional[SnowflakeClient] = None,
) -> bool:
    """Replace the integration when its name changed.

    Returns True when the integration was replaced. When the name is
    unchanged nothing is issued, so a changed role ARN or URL prefix alone
    is not applied to the existing integration.
    """
    if physical_resource_id == integration_name:
        logger.warning(
            f"[WARNING] API integration {integration_name} unchanged by name; "
            "role ARN and allowed prefix are left as they are"
        )
        return False

    logger.info(
        f"[INFO] Integration name changed from {physical_resource_id} to {integration_name}, "
        "replacing it"
    )
    delete_api_integration(physical_resource_id, client=client)
    create_api_integration(integration_name, api_aws_role_arn, api_allowed_prefix, client=client)
    return True


def describe_api_integration(
    integration_name: str, client: Optional[SnowflakeClient] = None
) -> IntegrationDescriptor:
    """Read back the IAM user ARN and external id Snowflake assigned."""
    logger.info(f"[START] Describing API integration {integration_name}")
    rows = (client or get_snowflake_client()).execute_statement(
        f"DESCRIBE INTEGRATION {integration_name};"
    )
    if not rows:
        logger.error(f"[ERROR] No DESCRIBE output for API integration {integration_name}")
        raise ProvisioningError("No response from Snowflake - check logs for more details")

    properties = {
        str(row.get("property", "")).upper(): row.get("property_value") for row in rows
    }
    iam_user_arn = properties.get("API_AWS_IAM_USER_ARN")
    external_id = properties.get("API_AWS_EXTERNAL_ID")
    if not iam_user_arn or not external_id:
        logger.error(
            f"[ERROR] Unable to find API integration info for {integration_name}: "
            f"properties={sorted(properties)}"
        )
        raise ProvisioningError(
            "API_AWS_IAM_USER_ARN or API_AWS_EXTERNAL_ID not found in response from "
            "Snowflake - check logs"
        )

    logger.info(f"[INFO] API integration {integration_name} described")
    return IntegrationDescriptor(
        integration_name=integration_name,
        role_arn=str(properties.get("API_AWS_ROLE_ARN") or ""),
        allowed_prefix=str(properties.get("API_ALLOWED_PREFIXES") or ""),
        iam_user_arn=str(iam_user_arn),
        external_id=str(external_id),
    )


# ---------------------------------------------------------------------------
# External functions
# ---------------------------------------------------------------------------


def create_external_functions(
    integration_name: str,
    api_base_url: str,
    client: Optional[SnowflakeClient] = None,
    region: Optional[str] = None,
) -> None:
    sf = client or get_snowflake_client()
    statements = create_external_function_statements(integration_name, api_base_url, region)
    logger.info(f"[START] Creating {len(statements)} external functions")
    for statement in statements:
        sf.execute_statement(statement)
    logger.info("[INFO] External functions created")


def delete_external_functions(
    client: Optional[SnowflakeClient] = None, region: Optional[str] = None
) -> None:
    sf = client or get_snowflake_client()
    statements = drop_external_function_statements(region)
    logger.info(f"[START] Deleting {len(statements)} external functions")
    for statement in statements:
        sf.execute_statement(statement)
    logger.info("[INFO] External functions deleted")


def update_external_functions(
    integration_name: str,
    api_base_url: str,
    client: Optional[SnowflakeClient] = None,
    region: Optional[str] = None,
) -> None:
    """Drop and recreate the external functions so they point at ``api_base_url``."""
    delete_external_functions(client=client, region=region)
    create_external_functions(integration_name, api_base_url, client=client, region=region)
