"""WSGI entry point: ``gunicorn shortreads.wsgi:app`` or ``python -m shortreads.wsgi``."""
from __future__ import annotations

from shortreads.config import env_bool, env_int
from shortreads.startup import create_app

app = create_app()


def main() -> None:
    app.run(
        host="0.0.0.0",
        port=env_int("SHORTREADS_PORT", 8080),
        debug=env_bool("SHORTREADS_DEBUG", False),
    )


if __name__ == "__main__":
    main()
