"""Minimalist request dispatcher: ordered routes, binders, filters and hooks."""

__version__ = "0.1.0"

from signpost.app import App
from signpost.config import Settings
from signpost.context import RequestContext
from signpost.errors import BindingOrderError, ConfigurationError, HTTPError, NotFound
from signpost.request import Request, UploadInfo
from signpost.response import FileResponse, JSONResponse, RedirectResponse, Response
from signpost.routing import Route, Router, compile_pattern
from signpost.views import inline

__all__ = [
    "App",
    "BindingOrderError",
    "ConfigurationError",
    "FileResponse",
    "HTTPError",
    "JSONResponse",
    "NotFound",
    "RedirectResponse",
    "Request",
    "RequestContext",
    "Response",
    "Route",
    "Router",
    "Settings",
    "UploadInfo",
    "compile_pattern",
    "inline",
]
