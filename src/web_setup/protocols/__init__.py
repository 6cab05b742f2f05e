"""Protocol interfaces between layers.

Each layer depends on the capability set of the layer below it, never on a
concrete class:

    Server -> HealthService -> HealthRepository -> QueryExecutor
    (HTTP)    (Business)       (Data Access)       (Database)

Any object with matching methods satisfies a protocol, so tests substitute
in-memory fakes for the real database.
"""

from .health_repository import HealthRepository
from .health_service import HealthService
from .listener import Listener
from .query_executor import QueryExecutor

__all__ = [
    "HealthRepository",
    "HealthService",
    "Listener",
    "QueryExecutor",
]
