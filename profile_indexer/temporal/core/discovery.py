"""Discovery utility for Temporal workflows and activities."""

import importlib
import pkgutil

from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)

COMPONENT_PACKAGES = (
    "profile_indexer.temporal.activities",
    "profile_indexer.temporal.workflows",
)


def discover_all(packages=COMPONENT_PACKAGES) -> None:
    """Import every module of the component packages so their registry decorators run."""
    for package_name in packages:
        package = importlib.import_module(package_name)
        for _, module_name, _ in pkgutil.walk_packages(package.__path__, f"{package_name}."):
            importlib.import_module(module_name)
            LOGGER.debug(f"Imported Temporal component module: {module_name}")
    LOGGER.info("All Temporal workflows and activities discovered and registered successfully")
