"""ASGI entry point: ``uvicorn api.main:app``."""
from . import create_app

app = create_app()
