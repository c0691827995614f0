# START OF FILE clusterseed/installers/__init__.py
"""Component profiles known to ClusterSeed."""

from clusterseed.installers.base_installer import (
    ActivationContext,
    ComponentProfile,
    PreActivationHook,
    build_endpoint_set,
)
from clusterseed.installers.etcd_installer import ETCD_PROFILE
from clusterseed.installers.flanneld_installer import FLANNELD_PROFILE

PROFILES = {
    ETCD_PROFILE.name: ETCD_PROFILE,
    FLANNELD_PROFILE.name: FLANNELD_PROFILE,
}


def get_profile(name: str) -> ComponentProfile:
    """Look up a profile by component name."""
    try:
        return PROFILES[name]
    except KeyError:
        raise KeyError(f"unknown component: {name} (known: {', '.join(sorted(PROFILES))})")


__all__ = [
    "ActivationContext",
    "ComponentProfile",
    "PreActivationHook",
    "build_endpoint_set",
    "ETCD_PROFILE",
    "FLANNELD_PROFILE",
    "PROFILES",
    "get_profile",
]
