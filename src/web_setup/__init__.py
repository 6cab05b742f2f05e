"""Web Setup - application bootstrap for a PostgreSQL-backed HTTP service.

Layers:
    - protocols: Interface contracts between layers
    - repositories: Data access over the database handle
    - services: Business logic
    - handlers / api: HTTP endpoints and the server that hosts them
    - lifecycle: Start, wait for interrupt, drain within a deadline

Usage:
    ```
    python -m web_setup --env-file .env
    ```
"""

__version__ = "0.1.0"
