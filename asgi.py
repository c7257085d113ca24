"""
asgi.py -- ASGI entry point for the location catalog API.

Settings are resolved once here, at process start, and handed to the app
factory. Every worker process builds its own app from the same environment.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
