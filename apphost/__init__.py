# =============================================================================
# apphost/ - Composition Root
# =============================================================================
# Declares the deployable units of the application and starts them:
# - resources.py: Builder, project resources and the running application
# - main.py: The fixed topology (apiservice + webfrontend) and entry point
# - config.py: AppHostSettings
# - exceptions.py: CompositionError
# =============================================================================
