# =============================================================================
# apiservice/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# Tests replace these with app.dependency_overrides.
# =============================================================================

from typing import Annotated

from fastapi import Depends

from core.services.forecast_service import RandomSource, shared_random


def get_random_source() -> RandomSource:
    """
    Get the process-wide random source.

    random.Random is safe to share between concurrent requests.
    """
    return shared_random


# Type alias for dependency injection
RandomSourceDep = Annotated[RandomSource, Depends(get_random_source)]
