"""
asgi.py -- ASGI entry point for TicketDesk.

Run with:  uvicorn asgi:app --reload

Page rendering lives outside this service; the navigation gate in api/main.py
still guards the page paths so a reverse proxy can route them through here.
"""

from api.main import app

__all__ = ["app"]
