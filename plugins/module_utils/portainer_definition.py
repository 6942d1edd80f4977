from __future__ import annotations

import os
import re

from typing import TYPE_CHECKING, Dict, Mapping, Union

from jinja2 import Environment, TemplateError

from .portainer_module import ConfigurationError


if TYPE_CHECKING:
    from .portainer_module import PortainerModule


TemplateValue = Union[str, int, float, bool, Dict[str, "TemplateValue"]]
TemplateVariables = Dict[str, TemplateValue]

# Anything up to a quote or whitespace, so registry ports and ${VAR} tags match
IMAGE_TAG = r"[^\"'\s]*"


class StackDefinitionError(Exception):
    pass


class DefinitionNotFound(StackDefinitionError):
    pass


class TemplateRenderError(StackDefinitionError):
    pass


def image_repository(image: str) -> str:
    """Return the part of an image reference before the first ':'."""
    return image.split(":", 1)[0]


def substitute_image(content: str, image: str) -> str:
    """
    Point every `image:` declaration of the same repository at `image`.

    Tagged and untagged declarations are both matched. Quotes around the
    reference are kept as they were written.
    """
    repository = image_repository(image)
    if not repository:
        raise ConfigurationError(
            f"Image '{image}' has no repository part; expected 'repository[:tag]'."
        )

    pattern = re.compile(
        r"(?P<prefix>(?<![\w-])image:[ \t]*(?P<quote>[\"']?))"
        + re.escape(repository)
        + rf"(?::{IMAGE_TAG})?(?P=quote)(?=[\s,\]}}]|$)"
    )

    return pattern.sub(lambda m: f"{m.group('prefix')}{image}{m.group('quote')}", content)


def check_template_variables(variables: Mapping, prefix: str = "") -> None:
    for key, value in variables.items():
        name = f"{prefix}{key}"

        if not isinstance(key, str):
            raise ConfigurationError(f"Template variable names must be strings, got {name!r}.")

        if isinstance(value, Mapping):
            check_template_variables(value, prefix=f"{name}.")
        elif not isinstance(value, (str, int, float, bool)):
            raise ConfigurationError(
                f"Template variable '{name}' has unsupported type {type(value).__name__}; "
                "use a string, number, boolean or mapping."
            )


class StackDefinitionBuilder:
    """
    Produces the stack file content that is sent to Portainer.

    The local definition file is read, optionally rendered with Jinja2 using
    the given template variables, and optionally has its image reference
    replaced.
    """

    def __init__(self, module: PortainerModule, workspace: str | None = None) -> None:
        self.module = module
        self.workspace = workspace
        self.environment = Environment(keep_trailing_newline=True)

    def build(
        self,
        file_path: str,
        template_variables: TemplateVariables | None = None,
        image: str | None = None,
    ) -> str:
        filepath = self.resolve_path(file_path)
        self.module.info(f"Reading stack definition from {filepath}")

        content = self.read_definition(filepath)

        if template_variables is not None:
            self.module.info(
                f"Applying template variables for keys: {', '.join(template_variables)}"
            )
            content = self.render(content, template_variables)

        if not image:
            self.module.info("No image given, keeping the image from the stack definition.")
            return content

        self.module.info(f"Inserting image {image} into the stack definition")
        return substitute_image(content, image)

    def resolve_path(self, file_path: str) -> str:
        if os.path.isabs(file_path):
            return file_path

        return os.path.join(self.workspace or os.getcwd(), file_path)

    def render(self, content: str, template_variables: TemplateVariables) -> str:
        check_template_variables(template_variables)

        try:
            return self.environment.from_string(content).render(template_variables)
        except TemplateError as e:
            raise TemplateRenderError(f"Failed to render stack definition: {e}") from e

    def read_definition(self, filepath: str) -> str:
        description = "stack definition"

        try:
            with open(filepath, "rb") as f:
                content = f.read()
        except FileNotFoundError:
            raise DefinitionNotFound(f"Stack definition not found: {filepath}")
        except PermissionError:
            raise DefinitionNotFound(f"Permission denied reading stack definition: {filepath}")
        except IOError as e:
            raise DefinitionNotFound(f"Failed to read stack definition {filepath}: {e}")

        if not content.strip():
            raise DefinitionNotFound(f"Stack definition is empty: {filepath}")

        error = self.module.validate_text_content(content, description, filepath=filepath)
        if error:
            raise DefinitionNotFound(error)

        return content.decode("utf-8")
