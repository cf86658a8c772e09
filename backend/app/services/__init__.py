"""
Domain and infrastructure services.

Each module exposes a singleton, e.g. ``pet_service`` or ``signing_service``.
"""
