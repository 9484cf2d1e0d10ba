from ortu.api.main import create_app, serve

__all__ = [
    'create_app',
    'serve',
]
