from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ansible.module_utils.basic import env_fallback

from .portainer_crud import (
    Stack,
    StackFound,
    StackLookupFailed,
    StackNotFound,
    StackUpdateRequest,
)
from .portainer_definition import StackDefinitionBuilder
from .portainer_module import ConfigurationError


if TYPE_CHECKING:
    from .portainer_module import PortainerModule


def describe_stacks(stacks: list[Stack]) -> str:
    if not stacks:
        return "  (none)"
    return "\n".join(f"  - {stack}" for stack in stacks)


class StackDeployer:
    """
    Updates an existing Portainer stack with a freshly built definition.

    The target stack is resolved by id, by name, or by id with a fallback to
    name within the requested endpoint. The stack keeps its environment
    variables; only the stack file and the prune/pull flags are sent.
    """

    ARGSPEC = dict(
        endpoint_id=dict(type="int", required=True),
        name=dict(type="str"),
        stack_id=dict(type="int"),
        stack_definition=dict(type="path", required=True),
        workspace=dict(type="path", fallback=(env_fallback, ["GITHUB_WORKSPACE"])),
        template_variables=dict(type="dict"),
        image=dict(type="str"),
        prune=dict(type="bool", default=False),
        pull_image=dict(type="bool", default=False),
    )

    def __init__(
        self,
        module: PortainerModule,
        results: dict,
        definition_builder: StackDefinitionBuilder | None = None,
    ) -> None:
        self.module = module
        self.results = results
        self.crud = module.crud.stack
        self.check_mode = module.check_mode

        params = module.params
        self.endpoint_id: int = params["endpoint_id"]
        self.name: str | None = (params["name"] or "").strip() or None
        self.stack_id: int | None = params["stack_id"]
        self.stack_definition: str = params["stack_definition"]
        self.template_variables: dict[str, Any] | None = params["template_variables"]
        self.image: str | None = params["image"] or None
        self.prune: bool = bool(params["prune"])
        self.pull_image: bool = bool(params["pull_image"])

        self.definition_builder = definition_builder or StackDefinitionBuilder(
            module, workspace=params["workspace"]
        )

    def __call__(self) -> None:
        self.validate_args()

        try:
            content = self.definition_builder.build(
                self.stack_definition,
                template_variables=self.template_variables,
                image=self.image,
            )
            self.module.debug(content)

            stack = self.resolve_stack()
            self.update_stack(stack, content)
        except Exception as e:
            self.module.info(f"Stack deployment failed: {e}")
            raise

    def validate_args(self) -> None:
        if self.stack_id is None and self.name is None:
            raise ConfigurationError("Provide 'name' or 'stack_id' to select the stack to update.")

    def resolve_stack(self) -> Stack:
        """Callers run validate_args() first, so one of stack_id or name is set."""
        if self.stack_id is not None:
            return self.resolve_by_id(self.stack_id)

        return self.resolve_by_name(self.name)

    def resolve_by_id(self, stack_id: int) -> Stack:
        lookup = self.crud.get_stack_by_id(stack_id)

        if isinstance(lookup, StackFound):
            stack = lookup.stack
            self.module.info(f"Found stack by ID: {stack}")

            if stack.endpoint_id != self.endpoint_id:
                self.module.warn(
                    f"Stack {stack_id} belongs to endpoint {stack.endpoint_id}, "
                    f"not to the requested endpoint {self.endpoint_id}. "
                    f"The stack is updated on endpoint {stack.endpoint_id}."
                )
            return stack

        if isinstance(lookup, StackLookupFailed):
            raise lookup.error

        self.module.info(f"Stack with ID {stack_id} not found, listing stacks.")
        stacks = self.crud.list_stacks()
        endpoint_stacks = [s for s in stacks if s.endpoint_id == self.endpoint_id]

        if self.name is not None:
            for stack in endpoint_stacks:
                if stack.name == self.name:
                    self.module.info(f"Found stack by name on endpoint {self.endpoint_id}: {stack}")
                    return stack

            raise StackNotFound(
                f"Stack with ID {stack_id} not found and no stack named '{self.name}' "
                f"exists on endpoint {self.endpoint_id}. "
                f"Found {len(endpoint_stacks)} stack(s) on endpoint {self.endpoint_id}:\n"
                f"{describe_stacks(endpoint_stacks)}",
                endpoint_stacks=endpoint_stacks,
            )

        other_stacks = [s for s in stacks if s.endpoint_id != self.endpoint_id]
        raise StackNotFound(
            f"Stack with ID {stack_id} not found. "
            f"Found {len(endpoint_stacks)} stack(s) on endpoint {self.endpoint_id}:\n"
            f"{describe_stacks(endpoint_stacks)}\n"
            f"Found {len(other_stacks)} stack(s) on other endpoints:\n"
            f"{describe_stacks(other_stacks)}",
            endpoint_stacks=endpoint_stacks,
            other_stacks=other_stacks,
        )

    def resolve_by_name(self, name: str) -> Stack:
        stacks = self.crud.list_stacks()

        for stack in stacks:
            if stack.name == name:
                self.module.info(f"Found existing stack named {name}: {stack}")
                return stack

        endpoint_stacks = [s for s in stacks if s.endpoint_id == self.endpoint_id]
        other_stacks = [s for s in stacks if s.endpoint_id != self.endpoint_id]
        raise StackNotFound(
            f"Stack named '{name}' not found. Create the stack in Portainer first. "
            f"Found {len(stacks)} stack(s):\n{describe_stacks(stacks)}",
            endpoint_stacks=endpoint_stacks,
            other_stacks=other_stacks,
        )

    def update_stack(self, stack: Stack, content: str) -> None:
        request = StackUpdateRequest(
            env=stack.env,
            stack_file_content=content,
            prune=self.prune,
            pull_image=self.pull_image,
        )

        self.module.info(
            f"Updating stack {stack}: prune={request.prune}, pull_image={request.pull_image}"
        )

        if not self.check_mode:
            self.crud.update_stack(stack.id, endpoint_id=stack.endpoint_id, request=request)

        self.results["changed"] = True
        self.results["msg"] = "Stack updated."
        self.results["stack"] = stack.summary()
        self.results["stack_file_content"] = content
        self.results["prune"] = request.prune
        self.results["pull_image"] = request.pull_image
