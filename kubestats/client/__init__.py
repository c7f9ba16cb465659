"""Resource client package for kubestats.

Submodules
----------
base   -- ResourceClient / Subscription interfaces and resource kind names.
errors -- ResourceClientError hierarchy (connection vs query failures).
kube   -- KubeResourceClient: kubernetes-asyncio backend.
"""

from kubestats.client.base import ResourceClient, Subscription, format_selector
from kubestats.client.errors import ResourceClientError, ResourceConnectionError, ResourceQueryError

__all__ = [
    "ResourceClient",
    "ResourceClientError",
    "ResourceConnectionError",
    "ResourceQueryError",
    "Subscription",
    "format_selector",
]
