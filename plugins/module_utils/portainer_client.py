from __future__ import annotations

import json

from urllib.parse import urlencode
from typing import Any
from enum import Enum

from ansible.module_utils.urls import fetch_url
from ansible.module_utils.basic import AnsibleModule
from ansible.module_utils.common.text.converters import to_text


# base64 of {"registryId":1}
REGISTRY_AUTH = "eyJyZWdpc3RyeUlkIjoxfQ=="


def normalize_portainer_url(url: str) -> str:
    """
    Turn a user supplied Portainer host into the API root.

    Trailing slashes are dropped, the scheme defaults to https and a trailing
    '/api' is removed so it is not doubled.
    """
    host = url.strip().rstrip("/")

    if not host.startswith(("http://", "https://")):
        host = f"https://{host}"

    if host.endswith("/api"):
        host = host[: -len("/api")]

    return f"{host}/api"


class PortainerApiError(Exception):
    def __init__(
        self,
        message,
        status: int | None = None,
        body: Any | None = None,
        url: str | None = None,
        method: str | None = None,
        data: dict | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.body = body
        self.url = url
        self.method = method
        self.data = data

    def describe(self) -> str:
        body = self.body
        if not isinstance(body, str):
            body = json.dumps(body, indent=2, default=str)

        return f"HTTP request failed with status {self.status} ({self.method} {self.url}):\n{body}"


class RequestMethod(Enum):
    GET = "GET"
    PUT = "PUT"


class PortainerClient:

    class exc:
        PortainerApiError = PortainerApiError

    ARGSPEC = dict(
        portainer_url=dict(type="str", required=True),
        portainer_token=dict(type="str", required=True, no_log=True),
        validate_certs=dict(type="bool", default=True),
        timeout=dict(type="int", default=30),
    )

    def __init__(self, module: AnsibleModule):
        self.module = module

        self.api_url = normalize_portainer_url(module.params["portainer_url"])
        self.portainer_token = module.params["portainer_token"]
        self.timeout = module.params["timeout"]

        self.headers = {
            "X-API-Key": self.portainer_token,
            "X-Registry-Auth": REGISTRY_AUTH,
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        }

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        return self._make_request(RequestMethod.GET, endpoint, params=params)

    def put(
        self,
        endpoint: str,
        data: dict[str, Any] | None = None,
        params: dict | None = None,
    ) -> Any:
        return self._make_request(RequestMethod.PUT, endpoint=endpoint, data=data, params=params)

    def _make_request(
        self,
        method: RequestMethod,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """Make HTTP request to Portainer API"""
        url = f"{self.api_url}{endpoint}"

        if params:
            # Convert booleans to lowercase strings
            params_converted = {
                k: str(v).lower() if isinstance(v, bool) else v for k, v in params.items()
            }
            url = f"{url}?{urlencode(params_converted)}"

        _data = json.dumps(data) if data is not None else None

        resp, info = fetch_url(
            self.module,
            url,
            method=method.value,
            headers=self.headers,
            data=_data,
            force=True,
            timeout=self.timeout,
        )

        if info["status"] not in [200, 201, 204]:
            raise PortainerApiError(
                f"{info['msg']}",
                status=info["status"],
                body=self._decode_body(info.get("body", "")),
                url=url,
                method=method.value,
                data=data,
            )

        if resp:
            body = resp.read()

            if body:
                return json.loads(body)
        return None

    @staticmethod
    def _decode_body(body: Any) -> Any:
        if not body:
            return ""

        text = to_text(body, errors="surrogate_or_replace")
        try:
            return json.loads(text)
        except ValueError:
            return text
