"""ASGI entrypoint for the meal chat API."""

from meal_chat.api.app import create_app
from meal_chat.containers import build_container

app = create_app(build_container())
