"""ASGI entry point: ``palimpsest.asgi:app``."""

from palimpsest.app_factory import create_app

app = create_app()
