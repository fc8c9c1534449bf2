"""HTTP host for the API key gate."""

from apikey_gate.server.factory import create_app
from apikey_gate.server.transport import run_http

__all__ = ["create_app", "run_http"]
