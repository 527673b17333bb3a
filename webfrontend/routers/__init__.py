# =============================================================================
# webfrontend/routers/ - Page Routes
# =============================================================================
# - pages.py: Home, weather and error pages
# =============================================================================

from . import pages

__all__ = [
    "pages",
]
