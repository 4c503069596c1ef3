"""
The storefront host: builds the shared context and mounts remotes into it.
"""

from host.context import HostContext, create_host_context

__all__ = ["HostContext", "create_host_context"]
