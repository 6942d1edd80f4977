#!/usr/bin/python
# portainer_stack_deploy.py - A module to redeploy existing Portainer stacks.
# Author: Igor Moraru (@bgtor)
# License: GPL-3.0-or-later
# GNU General Public License v3.0+ (see COPYING or https://www.gnu.org/licenses/gpl-3.0.txt)

from __future__ import absolute_import, division, print_function, annotations

__metaclass__ = type

DOCUMENTATION = r"""
---
module: portainer_stack_deploy
short_description: Redeploy an existing Portainer stack with a new definition
description:
    - Push a local stack definition to an existing Portainer stack and redeploy it.
    - The definition can be rendered with Jinja2 template variables before it is sent.
    - The image reference of the definition can be replaced with a new image.
    - Environment variables of the stack are kept as they are in Portainer.
    - The stack must already exist. This module never creates or deletes stacks.
version_added: "1.0.0"
author: Igor Moraru (@bgtor)
options:
    endpoint_id:
        description:
            - ID of the Portainer endpoint the stack is expected on.
            - Used to narrow the name lookup when O(stack_id) is not found.
            - When the stack found by O(stack_id) belongs to another endpoint a warning is
              emitted and the stack is updated on its own endpoint.
        type: int
        required: true

    name:
        description:
            - Name of the stack to update.
            - Required when O(stack_id) is not provided.
            - When used alone, the first stack with this name on any endpoint is updated.
            - When used with O(stack_id), it is the fallback if the ID does not exist.
        type: str
        required: false

    stack_id:
        description:
            - Unique identifier of the stack to update.
            - Required when O(name) is not provided.
        type: int
        required: false

    stack_definition:
        description:
            - Path to the stack (compose) file.
            - Relative paths are resolved against O(workspace).
            - File must be non-empty UTF-8 text.
        type: path
        required: true

    workspace:
        description:
            - Directory that relative O(stack_definition) paths are resolved against.
            - Defaults to the E(GITHUB_WORKSPACE) environment variable, then to the
              current working directory.
        type: path
        required: false

    template_variables:
        description:
            - Variables used to render the stack definition as a Jinja2 template.
            - Accepts a dictionary or a JSON encoded string.
            - Values must be strings, numbers, booleans or nested dictionaries.
            - Undefined placeholders render as empty strings.
        type: dict
        required: false

    image:
        description:
            - Image reference to put into the stack definition, for example C(myrepo/app:2.0).
            - Every C(image:) entry whose repository equals the part of O(image) before the
              first C(:) is replaced, with or without a tag.
            - Quotes around the existing reference are preserved.
        type: str
        required: false

    prune:
        description:
            - Remove services that are no longer defined in the stack file.
        type: bool
        default: false

    pull_image:
        description:
            - Pull the images again when redeploying the stack.
        type: bool
        default: false

extends_documentation_fragment:
    - bgtor.portainer_deploy.portainer_client

notes:
    - Either O(name) or O(stack_id) must be provided. A blank O(name) counts as not provided.
    - The module supports check mode (C(--check)); the stack is resolved but not updated.
    - There is no retry. A failed update has to be triggered again.
"""

EXAMPLES = r"""
- name: Deploy a new image to a stack found by name
  portainer_stack_deploy:
    portainer_url: https://portainer.example.com
    portainer_token: "{{ portainer_api_token }}"
    endpoint_id: 1
    name: myapp
    stack_definition: deploy/docker-compose.yml
    image: registry.example.com/myapp:1.4.2

- name: Deploy by stack ID, falling back to the stack name
  portainer_stack_deploy:
    portainer_url: portainer.example.com
    portainer_token: "{{ portainer_api_token }}"
    endpoint_id: 2
    stack_id: 42
    name: myapp
    stack_definition: /opt/stacks/myapp/docker-compose.yml
    prune: true
    pull_image: true

- name: Render the stack file with template variables
  portainer_stack_deploy:
    portainer_url: https://portainer.example.com
    portainer_token: "{{ portainer_api_token }}"
    endpoint_id: 1
    name: webapp
    stack_definition: docker-compose.yml.j2
    workspace: "{{ playbook_dir }}/stacks"
    template_variables:
      replicas: 3
      domain: app.example.com
      tls:
        enabled: true

- name: Preview the definition that would be deployed
  portainer_stack_deploy:
    portainer_url: https://portainer.example.com
    portainer_token: "{{ portainer_api_token }}"
    endpoint_id: 1
    name: myapp
    stack_definition: docker-compose.yml
    image: myrepo/app:2.0
  check_mode: yes
"""

RETURN = r"""
changed:
    description: Whether the stack was updated
    type: bool
    returned: always
    sample: true

msg:
    description: Human-readable message describing the operation result
    type: str
    returned: always
    sample: "Stack updated."

stack:
    description: The stack that was updated
    type: dict
    returned: success
    contains:
        Id:
            description: Unique identifier of the stack
            type: int
            sample: 42
        Name:
            description: Name of the stack
            type: str
            sample: "myapp"
        EndpointId:
            description: ID of the endpoint the stack was updated on
            type: int
            sample: 1

stack_file_content:
    description: Stack definition sent to Portainer
    type: str
    returned: success
    sample: "services:\n  app:\n    image: myrepo/app:2.0\n"

prune:
    description: Prune flag sent with the update
    type: bool
    returned: success
    sample: false

pull_image:
    description: Pull image flag sent with the update
    type: bool
    returned: success
    sample: false

stacks:
    description: Stacks known to Portainer, returned when the target stack cannot be found
    type: dict
    returned: when the stack is not found
    contains:
        endpoint:
            description: Stacks on the requested endpoint
            type: list
            elements: dict
        other:
            description: Stacks on other endpoints
            type: list
            elements: dict

status:
    description: HTTP status of a failed API request
    type: int
    returned: when an API request fails
    sample: 500

body:
    description: Response body of a failed API request, decoded from JSON when possible
    type: raw
    returned: when an API request fails
    sample: {"message": "Invalid stack file"}

url:
    description: URL of a failed API request
    type: str
    returned: when an API request fails
    sample: "https://portainer.example.com/api/stacks/42"

method:
    description: HTTP method of a failed API request
    type: str
    returned: when an API request fails
    sample: "PUT"
"""

from ..module_utils.portainer_module import PortainerModule, ConfigurationError
from ..module_utils.portainer_definition import StackDefinitionError
from ..module_utils.portainer_deploy import StackDeployer


def main():

    module = PortainerModule(
        argument_spec=PortainerModule.generate_argspec(**StackDeployer.ARGSPEC),
        supports_check_mode=True,
    )

    try:
        results = dict(changed=False)

        StackDeployer(module, results)()

        module.exit_json(**results)

    except module.client.exc.PortainerApiError as e:
        module.fail_json(
            msg=e.describe(),
            status=e.status,
            body=e.body,
            url=e.url,
            method=e.method,
        )

    except module.crud.exc.StackNotFound as e:
        module.fail_json(msg=str(e), stacks=e.to_dict())

    except (ConfigurationError, StackDefinitionError) as e:
        module.fail_json(msg=str(e))

    except Exception as e:
        module.fail_json(msg=f"Error deploying stack: {str(e)}")


if __name__ == "__main__":
    main()
