"""Schema definitions for persisted sync plans and store instances."""

import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_serializer, field_validator


class SyncPlan(BaseModel):
    """A saved pairing of a local directory with a bucket prefix."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique plan id")
    bucket: str = Field(..., min_length=1, description="Bucket name")
    store_instance_id: str = Field(
        ...,
        alias="s3_instance_id",
        min_length=1,
        description="Store instance holding endpoint and credentials"
    )
    local_dir: str = Field(..., min_length=1, description="Local directory path")
    remote_dir: str = Field(default="", description="Remote directory, used as key prefix")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v):
        return str(uuid.UUID(str(v)))

    @field_validator("remote_dir")
    @classmethod
    def validate_remote_dir(cls, v):
        return v.replace("\\", "/")

    def to_document(self) -> dict:
        """Serialise with the on-disk field names."""
        return self.model_dump(by_alias=True)


class StoreInstance(BaseModel):
    """Connection details for one S3-compatible endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    instance_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        alias="s3_instance_id",
        min_length=1
    )
    name: Optional[str] = Field(None, description="Human-readable label")
    endpoint_url: str = Field(default="", description="Custom endpoint; empty means AWS")
    access_key_id: str = Field(..., min_length=1)
    secret_access_key: SecretStr = Field(...)
    region: str = Field(default="us-east-1", min_length=1)

    @field_validator("endpoint_url")
    @classmethod
    def validate_endpoint_url(cls, v):
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("endpoint_url must start with http:// or https://")
        return v.rstrip("/")

    @field_serializer("secret_access_key", when_used="json")
    def dump_secret(self, v: SecretStr) -> str:
        return v.get_secret_value()

    def to_document(self) -> dict:
        """Serialise for the document store, secret included."""
        return self.model_dump(mode="json", by_alias=True)


class ImportFile(BaseModel):
    """Bulk import file with plans and instances."""

    instances: List[StoreInstance] = Field(default_factory=list)
    plans: List[SyncPlan] = Field(default_factory=list)
