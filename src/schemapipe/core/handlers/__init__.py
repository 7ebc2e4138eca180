"""Handler registry for schemapipe.

Handlers are coroutine functions taking ``(registry, args)`` and returning a
JSON-serializable dict.
"""

from schemapipe.core.handlers import validation
from schemapipe.core.handlers import project


# Unified handler registry - combines all handler modules
HANDLERS = {
    **validation.HANDLERS,
    **project.HANDLERS,
}


def get_handler(name: str):
    """Get a handler function by name.

    Args:
        name: The handler name to look up

    Returns:
        The handler function, or None if not found
    """
    return HANDLERS.get(name)


def list_handlers() -> list[str]:
    """List all registered handler names."""
    return list(HANDLERS.keys())
