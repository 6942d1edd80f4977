from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Union

from .portainer_fields import PortainerFields as PF
from .portainer_client import PortainerApiError


if TYPE_CHECKING:
    from .portainer_module import PortainerModule


class PortainerCRUDException(Exception):
    pass


class StackNotFound(PortainerCRUDException):
    def __init__(
        self,
        message,
        endpoint_stacks: list[Stack] | None = None,
        other_stacks: list[Stack] | None = None,
    ):
        super().__init__(message)
        self.endpoint_stacks = endpoint_stacks or []
        self.other_stacks = other_stacks or []

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "endpoint": [s.summary() for s in self.endpoint_stacks],
            "other": [s.summary() for s in self.other_stacks],
        }


@dataclass
class Stack:
    id: int
    name: str
    endpoint_id: int
    env: list[dict] = field(default_factory=list)

    fields_mapping: ClassVar[dict] = {
        PF.STACK_ID: "id",
        PF.STACK_NAME: "name",
        PF.STACK_ENDPOINT_ID: "endpoint_id",
        PF.STACK_ENV: "env",
    }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Stack:
        values = {attr: data.get(key) for key, attr in cls.fields_mapping.items()}
        # Portainer sends "Env": null for stacks without variables
        values["env"] = values["env"] or []
        return cls(**values)

    def summary(self) -> dict[str, Any]:
        """Identifying fields only; Env may hold secrets."""
        return {
            PF.STACK_ID: self.id,
            PF.STACK_NAME: self.name,
            PF.STACK_ENDPOINT_ID: self.endpoint_id,
        }

    def __str__(self) -> str:
        return f"{self.name} (ID: {self.id}, EndpointId: {self.endpoint_id})"


@dataclass
class StackUpdateRequest:
    env: list[dict]
    stack_file_content: str
    prune: bool = False
    pull_image: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            PF.STACK_UPDATE_ENV: self.env,
            PF.STACK_UPDATE_FILE_CONTENT: self.stack_file_content,
            PF.STACK_UPDATE_PRUNE: self.prune,
            PF.STACK_UPDATE_PULL_IMAGE: self.pull_image,
        }


@dataclass
class StackFound:
    stack: Stack


@dataclass
class StackMissing:
    stack_id: int


@dataclass
class StackLookupFailed:
    error: PortainerApiError


StackLookup = Union[StackFound, StackMissing, StackLookupFailed]


class BaseCRUD:

    def __init__(self, module: PortainerModule, endpoint: str, resource_name: str) -> None:
        self.module = module

        self.resource_name = resource_name
        self._endpoint = endpoint

    def _get_update_endpoint(self, id: int) -> str:
        return f"{self.endpoint}/{id}"

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def get_item_by_id(self, item_id: int) -> Any:
        if item_id is None:
            raise ValueError(f"{self.resource_name.capitalize()} ID cannot be None")

        return self._process_response(self.module.client.get(f"{self.endpoint}/{item_id}"))

    def list_items(self, params: dict | None = None) -> Any:

        return self._process_response(self.module.client.get(self.endpoint, params=params))

    def update_item(self, item_id: int, changes: dict, params: dict | None = None) -> None:
        """Send an update; the response body is not used."""
        if item_id is None:
            raise ValueError(f"{self.resource_name.capitalize()} ID cannot be None")

        self.module.client.put(self._get_update_endpoint(item_id), data=changes, params=params)

    def _process_response(self, data: Any) -> Any:
        """
        Hook for subclasses to normalize/transform response data.
        Can handle both single items and lists.
        """
        if not data:
            return data

        if isinstance(data, list):
            return [self._process_single_item(item) for item in data]
        return self._process_single_item(data)

    def _process_single_item(self, item: dict) -> Any:
        """Process a single item. Override this in subclasses."""
        return item


class StackCRUD(BaseCRUD):

    def __init__(self, module: PortainerModule) -> None:
        super().__init__(module, endpoint="/stacks", resource_name="stack")

    def _process_single_item(self, item: dict[str, Any]) -> Stack:
        return Stack.from_dict(item)

    def list_stacks(self) -> list[Stack]:
        return self.list_items() or []

    def get_stack_by_id(self, stack_id: int) -> StackLookup:
        """
        Fetch a single stack.

        A 404 (or an empty answer) is reported as StackMissing so callers can
        fall back to a name lookup. Every other API failure is returned as
        StackLookupFailed and left to the caller to raise.
        """
        try:
            stack = self.get_item_by_id(stack_id)
        except PortainerApiError as e:
            if e.status == 404:
                return StackMissing(stack_id=stack_id)
            return StackLookupFailed(error=e)

        if not stack:
            return StackMissing(stack_id=stack_id)

        return StackFound(stack=stack)

    def update_stack(self, stack_id: int, endpoint_id: int, request: StackUpdateRequest) -> None:
        params = {PF.STACK_ENDPOINT_ID_QUERY: endpoint_id}
        self.update_item(stack_id, changes=request.to_dict(), params=params)


class PortainerCRUD:

    class exc:
        PortainerCRUDException = PortainerCRUDException
        StackNotFound = StackNotFound

    def __init__(self, module: PortainerModule) -> None:
        self.module = module
        self.stack = StackCRUD(module)
