"""API dependencies for dependency injection."""

from fastapi import Depends

from ..core import SeatingCoordinator
from ..services.suggestions import SuggestionService


# Global coordinator instance
coordinator = SeatingCoordinator()


def get_coordinator() -> SeatingCoordinator:
    """Get seating coordinator dependency."""
    return coordinator


def get_suggestion_service(
    seating: SeatingCoordinator = Depends(get_coordinator),
) -> SuggestionService:
    """Get suggestion service dependency."""
    return SuggestionService(seating)
