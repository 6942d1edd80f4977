class ModuleDocFragment(object):

    DOCUMENTATION = r"""
    options:
        portainer_url:
            description:
                - URL of the Portainer instance.
                - Trailing slashes and a trailing C(/api) are removed.
                - C(https://) is assumed when no scheme is given.
            required: true
            type: str
        portainer_token:
            description: Portainer API access token, sent as the C(X-API-Key) header
            required: true
            type: str
        timeout:
            description: Timeout for API requests
            type: int
            default: 30
        validate_certs:
            description: Validate SSL certificates
            type: bool
            default: true
    """
