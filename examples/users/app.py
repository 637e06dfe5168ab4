"""
Users example application.

Run with:
    python -m examples.users.app
    kestrel serve examples.users.app:create_app
"""

from typing import Optional

from kestrel import ConfigService, Kestrel

from .module import UserModule
from .registry import registry


def create_app(config: Optional[ConfigService] = None) -> Kestrel:
    app = Kestrel(registry, config=config)
    app.register_module(UserModule)
    return app


def main():
    create_app().listen()


if __name__ == "__main__":
    main()
