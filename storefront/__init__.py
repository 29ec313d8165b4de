from .app import close_resources, create_app

__all__ = ["create_app", "close_resources"]
