"""
Challenge-solving proxy support.

Speaks the FlareSolverr command API and manages the proxy session shared
by all fetches of a process.
"""

from politefetch.proxy.client import ProxyClient, ProxyResponse, ProxySolution
from politefetch.proxy.session import SessionCoordinator

__all__ = [
    "ProxyClient",
    "ProxyResponse",
    "ProxySolution",
    "SessionCoordinator",
]
