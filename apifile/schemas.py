"""Pydantic schemas for apifile responses."""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class FileRecord(BaseModel):
    """A file as reported by the server after an upload or in search results."""
    model_config = ConfigDict(populate_by_name=True, extra='allow')

    file_id: Optional[str] = Field(default=None, alias='uuid')
    name: Optional[str] = Field(default=None, alias='nombre')
    size: Optional[int] = Field(default=None, alias='tamaño')
    content_type: Optional[str] = Field(default=None, alias='tipo_contenido')
    created_at: Optional[str] = Field(default=None, alias='fecha')
    readable_size: Optional[str] = Field(default=None, alias='tamaño_legible')
    backup_status: Optional[str] = None
    backup_timestamp: Optional[str] = None

    @field_validator('file_id', mode='before')
    @classmethod
    def coerce_file_id(cls, value):
        """Some deployments return numeric ids."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ChunkUploadResponse(BaseModel):
    """Response body for one chunk request or a finalize request."""
    model_config = ConfigDict(populate_by_name=True, extra='allow')

    files: List[FileRecord] = Field(alias='archivos')


class TokenResponse(BaseModel):
    """OpenID Connect token endpoint response."""
    model_config = ConfigDict(extra='allow')

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: Optional[str] = None
