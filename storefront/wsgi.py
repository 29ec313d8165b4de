import atexit
import logging

from .app import close_resources, create_app

app = create_app()
logging.basicConfig(level=app.config["LOG_LEVEL"])
atexit.register(close_resources, app)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=app.config["PORT"])
