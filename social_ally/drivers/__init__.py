from .base import Driver, LongLivedTokenExchange, Provider
from .github import GITHUB
from .linkedin import LINKEDIN
from .registry import DriverRegistry
from .threads import THREADS
from .tiktok import TIKTOK

PROVIDERS = (GITHUB, LINKEDIN, THREADS, TIKTOK)


def default_registry() -> DriverRegistry:
    """Fresh registry holding every bundled provider"""
    registry = DriverRegistry()
    for provider in PROVIDERS:
        registry.register_provider(provider)
    return registry


__all__ = [
    "Driver",
    "DriverRegistry",
    "LongLivedTokenExchange",
    "Provider",
    "GITHUB",
    "LINKEDIN",
    "THREADS",
    "TIKTOK",
    "PROVIDERS",
    "default_registry",
]
