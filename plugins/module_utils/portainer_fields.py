"""
Portainer API Field Reference
Generated from API responses and verified through testing.

Use this as the source of truth for field names.
"""


class PortainerFields:
    """Verified field names from Portainer API responses"""

    # Stacks
    STACK_ID = "Id"
    STACK_NAME = "Name"
    STACK_ENDPOINT_ID = "EndpointId"
    STACK_ENDPOINT_ID_QUERY = "endpointId"
    STACK_ENV = "Env"
    STACK_ENV_NAME = "name"
    STACK_ENV_VALUE = "value"

    # Stack update body (PUT /stacks/{id})
    STACK_UPDATE_ENV = "env"
    STACK_UPDATE_FILE_CONTENT = "stackFileContent"
    STACK_UPDATE_PRUNE = "prune"
    STACK_UPDATE_PULL_IMAGE = "pullImage"
