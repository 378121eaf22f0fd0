"""Editor protocol phases - handshake → transfer → export."""

from .export import ExportCollector, ExportProtocol, build_export_command
from .handshake import DocumentHandshakeProtocol, HandshakeState
from .transfer import PayloadTransferProtocol

__all__ = [
    "DocumentHandshakeProtocol",
    "HandshakeState",
    "PayloadTransferProtocol",
    "ExportProtocol",
    "ExportCollector",
    "build_export_command",
]
