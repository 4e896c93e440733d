"""
Larkspur transport - ASGI request/response layer and body parsers.
"""

from .app import Transport, TransportRoute, compile_path
from .request import Request, UploadFile
from .response import Response, ResponseAlreadySent
from . import parsers

__all__ = [
    "Transport",
    "TransportRoute",
    "compile_path",
    "Request",
    "UploadFile",
    "Response",
    "ResponseAlreadySent",
    "parsers",
]
