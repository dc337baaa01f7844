"""ASGI entrypoint for the tracechain gateway API."""

from tracechain_gateway.api.app import create_app
from tracechain_gateway.containers import build_container

app = create_app(build_container())
