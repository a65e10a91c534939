"""location_shared — Shared code for the Snowflake location proxy Lambdas.

Provides:
    - Environment configuration and AppConfig / Secrets Manager readers
    - Amazon Location, AppConfig and Secrets Manager client singletons
    - Batch envelope codec and function-name router
    - Place index cache and per-row geocoding dispatcher
    - Snowflake connection pool and API integration statements
"""

__version__ = "1.0.0"
