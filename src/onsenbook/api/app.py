"""ASGI application built for the APP_ROLE in the environment."""

from onsenbook.api.factory import create_app

app = create_app()
