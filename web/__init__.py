"""HTTP control surface (Flask JSON API with a server-sent event stream)."""
from web.server import create_app, serve

__all__ = ["create_app", "serve"]
