from __future__ import annotations

from typing import Any
from ansible.module_utils.basic import AnsibleModule

from .portainer_client import PortainerClient
from .portainer_crud import PortainerCRUD


class ConfigurationError(Exception):
    """Module arguments are missing or contradict each other."""


class PortainerModule(AnsibleModule):
    def __init__(self, *args, **kwargs):

        super(PortainerModule, self).__init__(*args, **kwargs)

        self.client = PortainerClient(self)
        self.crud = PortainerCRUD(self)

    @classmethod
    def generate_argspec(cls, **kwargs):
        spec = PortainerClient.ARGSPEC.copy()
        spec.update(**kwargs)

        return spec

    def info(self, msg: str) -> None:
        """Record a progress message in the managed host's log."""
        self.log(msg)

    def validate_text_content(
        self,
        content: bytes,
        description: str | None = None,
        filepath: str | None = None,
    ) -> str | None:
        """
        Validate that content is text, not binary.

        Args:
            content: bytes to validate
            description: human-readable description of the content (e.g., "stack definition")
            filepath: path to the file (for error messages)

        Returns:
            None when the content is text, otherwise an error message
        """
        # Validate UTF-8 encoding
        try:
            content.decode("utf-8")
        except UnicodeDecodeError:
            return self._build_error_message("invalid UTF-8 encoding", description, filepath)

        # Check for null bytes
        if b"\x00" in content:
            return self._build_error_message("null bytes detected", description, filepath)

        if len(content) > 0:
            control_chars = sum(1 for b in content if b < 0x20 and b not in (0x09, 0x0A, 0x0D))
            if control_chars / len(content) > 0.30:
                return self._build_error_message(
                    "excessive control characters", description, filepath
                )

        return None

    def _build_error_message(self, reason: str, description: Any, filepath: Any) -> str:
        """Build a consistent error message"""
        parts = []
        if description:
            parts.append(description.capitalize())
        else:
            parts.append("Content")

        parts.append(f"contains binary data ({reason})")

        if filepath:
            parts.append(f": {filepath}")

        return " ".join(parts)
