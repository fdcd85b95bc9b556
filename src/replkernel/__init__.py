"""replkernel - message-handling core of an interactive computing kernel."""

__version__ = "0.1.0"

from .kernel import Kernel, KernelConnection, KernelLoop  # noqa: E402
from .message import Message, make_reply  # noqa: E402
from .types import NormalizedResponse, ResponseState  # noqa: E402

__all__ = [
    "Kernel",
    "KernelConnection",
    "KernelLoop",
    "Message",
    "NormalizedResponse",
    "ResponseState",
    "make_reply",
]
