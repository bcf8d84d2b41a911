from .discovery import DevportDiscovery, Endpoint, StaticDiscovery, TargetDiscovery
from .relay import FanoutRelay, FanoutResponse, ForwardResult

__all__ = [
    "DevportDiscovery",
    "Endpoint",
    "FanoutRelay",
    "FanoutResponse",
    "ForwardResult",
    "StaticDiscovery",
    "TargetDiscovery",
]
