"""Cross-cutting dependencies shared by every layer.

One ``DependencyHandler`` is built at boot and passed by reference to the
repository, service and route layers. New concerns (metrics, tracing) become
new fields here rather than module globals.
"""

from dataclasses import dataclass

from web_setup.logger import Log


@dataclass
class DependencyHandler:
    """Container handed to each layer's constructor."""

    logger: Log
