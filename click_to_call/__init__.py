"""
FreePBX Click-to-Call

Originates calls from an extension to a number through the Asterisk Manager Interface,
for callers on an IP allow-list.
"""

__version__ = "1.0.0"

from .models import CallRequest, CallResult, ProtocolResponse, SessionState
from .address_matcher import AddressMatcher
from .asterisk_manager import ManagerSession
from .workflow import CallOriginationWorkflow

__all__ = [
    "AddressMatcher",
    "CallOriginationWorkflow",
    "CallRequest",
    "CallResult",
    "ManagerSession",
    "ProtocolResponse",
    "SessionState"
]
