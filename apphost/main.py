#!/usr/bin/env python3
# =============================================================================
# apphost/main.py - Composition Root Entry Point
# =============================================================================
# Declares the application topology and starts it.
#
# Usage:
#   python -m apphost.main
#   family-copilot-apphost
#
# Press Ctrl+C to stop all services.
# =============================================================================

import asyncio
import logging

from dotenv import load_dotenv

from apphost.config import AppHostSettings
from apphost.exceptions import CompositionError
from apphost.resources import DistributedApplicationBuilder

logger = logging.getLogger(__name__)

APPLICATION_NAME = "Family Copilot"


def create_builder(settings: AppHostSettings | None = None) -> DistributedApplicationBuilder:
    """
    Declare the two services and how they depend on each other.

    - apiservice: weather API, healthy when /health returns 200
    - webfrontend: external web UI, references apiservice and starts
      only after apiservice is healthy
    """
    builder = DistributedApplicationBuilder(APPLICATION_NAME, settings)

    api_service = (
        builder.add_project("apiservice", "apiservice.main:app")
        .with_http_health_check("/health")
    )

    (
        builder.add_project("webfrontend", "webfrontend.main:app")
        .with_external_http_endpoints()
        .with_http_health_check("/health")
        .with_reference(api_service)
        .wait_for(api_service)
    )

    return builder


def main() -> None:
    """Build the topology and run it until interrupted."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        application = create_builder(AppHostSettings()).build()
        asyncio.run(application.run())
    except CompositionError as e:
        logger.error(str(e))
        raise SystemExit(1)
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
