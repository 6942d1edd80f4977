# -*- coding: utf-8 -*-
# Author: Igor Moraru (@bgtor)
# License: GPL-3.0-or-later
# GNU General Public License v3.0+ (see COPYING or https://www.gnu.org/licenses/gpl-3.0.txt)

from __future__ import absolute_import, division, print_function, annotations

__metaclass__ = type

import pytest

from plugins.module_utils.portainer_module import PortainerModule
from tests.unit.plugins.conftest import PortainerModuleFixture

pytestmark = pytest.mark.usefixtures("patch_ansible_module", "portainer_module")


def test_generate_argspec_merges_client_options():
    spec = PortainerModule.generate_argspec(name=dict(type="str"))

    assert spec["name"] == dict(type="str")
    assert spec["portainer_url"]["required"] is True
    assert spec["portainer_token"]["no_log"] is True


def test_validate_text_content_accepts_text(portainer_module: PortainerModuleFixture):

    module = portainer_module()

    assert module.validate_text_content(b"services:\n  app:\n    image: nginx\n") is None


@pytest.mark.parametrize(
    "content, reason",
    [
        (b"\xff\xfe\xfa", "invalid UTF-8 encoding"),
        (b"services:\x00", "null bytes detected"),
        (b"\x01\x02\x03\x04abc", "excessive control characters"),
    ],
)
def test_validate_text_content_rejects_binary(
    portainer_module: PortainerModuleFixture, content, reason
):

    module = portainer_module()

    error = module.validate_text_content(content, "stack definition", filepath="/tmp/stack.yml")

    assert error == f"Stack definition contains binary data ({reason}) : /tmp/stack.yml"
