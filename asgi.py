"""
asgi.py -- ASGI entry point for the credential service.

Builds the one production app from the process Settings. Kept separate from
api/main.py so importing the factory (tests, CLI) never reads the environment
or opens a database as a side effect.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
