"""Built-in factored domains.

These are concrete domains, not core abstractions; each module registers its
factory through ``PLUGIN_MANIFESTS``.
"""

from .navigation_chain import create_navigation_chain_domain
from .sysadmin import create_sysadmin_domain

__all__ = ["create_navigation_chain_domain", "create_sysadmin_domain"]
