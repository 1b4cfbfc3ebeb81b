"""
Wiring between settings, backends and route handlers.

Routes never build clients themselves; they ask for the store, the
settings or an authenticated key through the aliases at the bottom.

The store holds the collection for the whole process, so it is built
once in the application lifespan (see `open_video_store`) and parked on
`app.state`; `get_video_store` only hands it out.
"""

import logging
from contextlib import ExitStack, asynccontextmanager
from pathlib import Path
from typing import Annotated, AsyncIterator, Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.videos.store import FileUploader, LocalVideoStore, RemoteVideoStore, VideoStore
from ..infrastructure.local.storage import JsonFileStorage, LocalVideoPersistence
from ..infrastructure.snowflake.client import create_snowflake_connection
from ..infrastructure.snowflake.collection import SnowflakeVideoCollection
from ..infrastructure.snowflake.repositories.videos import SnowflakeConfig, VideoDocumentRepository
from ..infrastructure.static_config.client import StaticConfigClient
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client
from ..infrastructure.upload.client import UploadEndpointClient

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """X-API-Key must be one of API_KEYS; 403 otherwise."""
    if not api_key:
        logger.warning("Mutation attempted without API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing X-API-Key header",
        )

    if api_key not in settings.api_keys_list:
        logger.warning("Rejected API key", extra={"key_prefix": api_key[:4]})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Store Construction
# ---------------------------------------------------------------------------

def build_storage_client(settings: Settings) -> StorageClient:
    """R2 client, or the in-memory mock in mock mode."""
    if settings.r2_mock_mode:
        return create_storage_client(mock_mode=True)

    config = StorageConfig(
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        bucket_name=settings.r2_bucket_name,
        endpoint_url=settings.r2_endpoint,
        public_base_url=settings.r2_public_base_url,
    )
    return create_storage_client(config=config)


def build_snowflake_config(settings: Settings) -> Optional[SnowflakeConfig]:
    """Connection settings for the remote collection; None in mock mode."""
    if settings.snowflake_mock_mode:
        return None
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def build_local_store(settings: Settings) -> LocalVideoStore:
    persistence = LocalVideoPersistence(JsonFileStorage(Path(settings.local_storage_path)))

    seed_source = None
    if settings.store_backend == "static":
        seed_source = StaticConfigClient(
            settings.static_config_url,
            timeout=settings.static_config_timeout_seconds,
        )

    uploader: Optional[FileUploader] = None
    if settings.local_upload_mode == "endpoint":
        uploader = UploadEndpointClient(
            settings.upload_endpoint_url,
            public_path=settings.upload_public_path,
        )

    return LocalVideoStore(persistence, seed_source=seed_source, uploader=uploader)


@asynccontextmanager
async def open_video_store(settings: Settings) -> AsyncIterator[VideoStore]:
    """
    Build the store for the configured backend, load it, and tear it down
    (subscription, database connection) when the context exits.
    """
    with ExitStack() as resources:
        if settings.store_backend == "remote":
            conn = resources.enter_context(create_snowflake_connection(
                config=build_snowflake_config(settings),
                mock_mode=settings.snowflake_mock_mode,
            ))
            repository = VideoDocumentRepository(conn)
            repository.ensure_schema()

            store: VideoStore = RemoteVideoStore(
                collection=SnowflakeVideoCollection(
                    repository,
                    poll_interval=settings.collection_poll_interval_seconds,
                ),
                storage=build_storage_client(settings),
            )
        else:
            store = build_local_store(settings)

        logger.info(
            "Opening video store",
            extra={"backend": settings.store_backend, "store": type(store).__name__},
        )

        await store.load()
        try:
            yield store
        finally:
            await store.close()
            logger.info("Closed video store")


# ---------------------------------------------------------------------------
# Request Dependencies
# ---------------------------------------------------------------------------

def get_video_store(request: Request) -> VideoStore:
    """The store created in the application lifespan."""
    store = getattr(request.app.state, "video_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Video store not initialized",
        )
    return store


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
VideoStoreDep = Annotated[VideoStore, Depends(get_video_store)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
