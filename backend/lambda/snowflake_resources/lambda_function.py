"""snowflake_resources/lambda_function.py

CloudFormation custom-resource handler (invoked through the CDK provider
framework) that manages the Snowflake side of the location proxy:

    Create  CREATE API INTEGRATION, DESCRIBE it, CREATE the external functions
    Update  replace the integration if its name changed, DESCRIBE it,
            drop and recreate the external functions
    Delete  DROP the integration and the external functions (idempotent)

Create and Update return the integration name as PhysicalResourceId and the
IAM user ARN / external id Snowflake assigned, which the stack feeds into the
API Gateway role trust policy.

Environment variables:
    SECRET_NAME                         required (account, username, password)
    APPCONFIG_APPLICATION_ID            required
    APPCONFIG_ENVIRONMENT_ID            required
    APPCONFIG_CONFIGURATION_PROFILE_ID  required (warehouse profile)
    AWS_REGION                          Grab functions only in ap-southeast-1
    SNOWFLAKE_POOL_MAX                  default: 10
    LOG_LEVEL                           default: INFO
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from location_shared.config import LOG_LEVEL
from location_shared.errors import ConfigurationError, ProvisioningError
from location_shared.snowflake_client import SnowflakeClient, get_snowflake_client
from location_shared.snowflake_resources import (
    create_api_integration,
    create_external_functions,
    delete_api_integration,
    delete_external_functions,
    describe_api_integration,
    update_api_integration,
    update_external_functions,
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(LOG_LEVEL)

_REQUIRED_PROPERTIES = ("integrationName", "apiAwsRoleArn", "apiBaseUrl")


def _resource_properties(event: Dict[str, Any]) -> Dict[str, str]:
    properties = event.get("ResourceProperties") or {}
    missing = [key for key in _REQUIRED_PROPERTIES if not properties.get(key)]
    if missing:
        logger.error(f"[ERROR] missing properties in CloudFormation event: {missing}")
        raise ConfigurationError("missing properties in CloudFormation event")
    return {key: str(properties[key]) for key in _REQUIRED_PROPERTIES}


def _integration_response(client: SnowflakeClient, integration_name: str) -> Dict[str, Any]:
    descriptor = describe_api_integration(integration_name, client=client)
    return {
        "PhysicalResourceId": integration_name,
        "Data": {
            "API_AWS_IAM_USER_ARN": descriptor.iam_user_arn,
            "API_AWS_EXTERNAL_ID": descriptor.external_id,
        },
    }


def _on_create(event: Dict[str, Any], client: SnowflakeClient) -> Dict[str, Any]:
    props = _resource_properties(event)
    name = props["integrationName"]

    create_api_integration(name, props["apiAwsRoleArn"], props["apiBaseUrl"], client=client)
    # Describing also confirms the integration exists.
    response = _integration_response(client, name)
    create_external_functions(name, props["apiBaseUrl"], client=client)
    return response


def _on_update(event: Dict[str, Any], client: SnowflakeClient) -> Dict[str, Any]:
    props = _resource_properties(event)
    name = props["integrationName"]

    update_api_integration(
        name,
        props["apiAwsRoleArn"],
        props["apiBaseUrl"],
        physical_resource_id=event.get("PhysicalResourceId") or name,
        client=client,
    )
    response = _integration_response(client, name)
    update_external_functions(name, props["apiBaseUrl"], client=client)
    return response


def _on_delete(event: Dict[str, Any], client: SnowflakeClient) -> Dict[str, Any]:
    physical_id = event.get("PhysicalResourceId")
    if physical_id:
        delete_api_integration(physical_id, client=client)
    else:
        logger.warning("[WARNING] Delete without PhysicalResourceId; skipping API integration")
    delete_external_functions(client=client)
    return {}


_HANDLERS = {
    "Create": _on_create,
    "Update": _on_update,
    "Delete": _on_delete,
}


def lambda_handler(
    event: Dict[str, Any], context: Any, client: Optional[SnowflakeClient] = None
) -> Dict[str, Any]:
    request_type = event.get("RequestType")
    handler = _HANDLERS.get(request_type)
    if handler is None:
        logger.error(f"[ERROR] Unexpected RequestType: {request_type!r}")
        raise ProvisioningError("Unexpected event.RequestType - see logs for details")

    logger.info(
        f"[START] {request_type} Snowflake resources: "
        f"physical_id={event.get('PhysicalResourceId')}"
    )
    try:
        result = handler(event, client or get_snowflake_client())
    except Exception:
        logger.error(f"[ERROR] {request_type} Snowflake resources failed", exc_info=True)
        raise
    logger.info(f"[INFO] {request_type} Snowflake resources complete")
    return result
