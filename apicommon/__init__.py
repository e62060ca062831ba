"""Building blocks for plugin-based HTTP API services: API handlers, a WSGI server, access rules, labels and signatures."""

__version__ = "1.0.4"

__all__ = [
    "access",
    "autovalue",
    "idcheck",
    "ignore",
    "jsoncodec",
    "labels",
    "permit",
    "pm3_api",
    "pm3_plugins",
    "register",
    "server",
    "signature",
    "utils",
]