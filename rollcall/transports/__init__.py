from rollcall.transports._base import Transport
from rollcall.transports._registry import get_transport, get_transports, register

__all__ = ["Transport", "get_transport", "get_transports", "register"]
