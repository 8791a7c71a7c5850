"""File server configuration models.

See Also:
    [FileServer][banbooru.services.server.service.FileServer]: The service
        consuming these settings.
    [BaseServiceConfig][banbooru.core.base_service.BaseServiceConfig]: Base
        class providing ``interval``, ``max_consecutive_failures`` and
        ``metrics``.
"""

from __future__ import annotations

from pydantic import Field, field_validator

from banbooru.core.base_service import BaseServiceConfig
from banbooru.stores.blob import BlobStoreConfig
from banbooru.stores.roles import RoleStoreConfig
from banbooru.utils.keys import KeysConfig


IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


class FileServerConfig(BaseServiceConfig):
    """Configuration for the file server.

    Attributes:
        host: Bind address for the HTTP server.
        port: Port for the HTTP server.
        public_url: Externally visible base URL (``https://files.example``).
            When set, NIP-98 ``u`` tags are compared against this base plus
            the request path, and provenance URLs use it. When unset, the
            URL the request arrived with is used.
        auth_window: Maximum age (and clock skew) of an auth event, seconds.
        require_payload_tag: Reject auth events without a ``payload`` tag.
        cache_control: ``Cache-Control`` recorded for uploaded objects.
        blob_store: Blob store backend settings.
        role_store: Role store backend settings.
        keys: Service signing keys (loaded from ``PRIVATE_KEY``).
    """

    host: str = Field(default="0.0.0.0", min_length=1, description="HTTP bind address")  # noqa: S104
    port: int = Field(default=8080, ge=1, le=65535, description="HTTP port")
    public_url: str | None = Field(default=None, description="Externally visible base URL")
    auth_window: int = Field(default=60, ge=1, le=3600, description="Auth event freshness (s)")
    require_payload_tag: bool = Field(default=False)
    cache_control: str = Field(default=IMMUTABLE_CACHE_CONTROL, min_length=1)
    blob_store: BlobStoreConfig = Field(default_factory=BlobStoreConfig)
    role_store: RoleStoreConfig = Field(default_factory=RoleStoreConfig)
    keys: KeysConfig = Field(default_factory=lambda: KeysConfig.model_validate({}))

    @field_validator("public_url")
    @classmethod
    def _normalize_public_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.rstrip("/")
        if not v.startswith(("http://", "https://")):
            msg = "public_url must start with http:// or https://"
            raise ValueError(msg)
        return v
