"""
Query Engine Errors

Fatal errors propagate to the caller. Event-store and display-name failures
are caught inside the engine and degrade the answer instead.
"""

import logging
from typing import Any, Awaitable, Optional

logger = logging.getLogger("lifeqa.common.errors")


class LifeQAError(Exception):
    """Base class for query engine errors."""
    pass


class AuthorizationError(LifeQAError):
    """Querying user is not a member of the requested circle."""

    def __init__(self, user_id: str, circle_id: str):
        self.user_id = user_id
        self.circle_id = circle_id
        super().__init__(f"User {user_id} is not authorized to access circle {circle_id}")


class DependencyError(LifeQAError):
    """An external collaborator failed."""

    SERVICES = ("embedding", "vector_store", "event_store", "chat_completion", "directory")

    def __init__(self, service: str, message: Optional[str] = None):
        if service not in self.SERVICES:
            raise ValueError(f"Unknown dependency: {service}")
        self.service = service
        super().__init__(message or f"{service} dependency failed")


class AttributionLookupError(LifeQAError):
    """A member's display name could not be resolved."""

    def __init__(self, user_id: str, message: Optional[str] = None):
        self.user_id = user_id
        super().__init__(message or f"Display name not found for {user_id}")


async def call_dependency(service: str, awaitable: Awaitable) -> Any:
    """Await a collaborator call, wrapping foreign exceptions in DependencyError"""
    try:
        return await awaitable
    except LifeQAError:
        raise
    except Exception as e:
        logger.error("%s dependency failed: %s", service, e)
        raise DependencyError(service, f"{service} dependency failed: {e}") from e
