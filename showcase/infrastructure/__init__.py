"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- local: JSON file standing in for browser local storage
- static_config: HTTP fetch of /videos-config.json
- upload: client for the local /api/upload endpoint
- snowflake: remote document collection
- storage: Object storage (R2/S3)

These wrappers translate between external formats and our domain models.
"""
