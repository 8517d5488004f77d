# npzkit/settings.py
"""
Settings for npzkit using pydantic-settings.

Values can be set through environment variables prefixed with ``NPZKIT_``
(for instance ``NPZKIT_STREAM_CHUNK_SIZE=4096``) or by assigning to the
module-level ``config`` object.
"""

import logging
import zipfile
from contextlib import contextmanager
from typing import Any, Iterator, Literal

from pydantic import Field, field_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__.split(".")[0])

# Largest possible NPY v1.0 header: 10-byte preamble plus a uint16 length
MAX_V1_HEADER_SIZE = 0x10000 + 10

_COMPRESSION_METHODS = {
    "stored": zipfile.ZIP_STORED,
    "deflated": zipfile.ZIP_DEFLATED,
    "bzip2": zipfile.ZIP_BZIP2,
    "lzma": zipfile.ZIP_LZMA,
}

Compression = Literal["stored", "deflated", "bzip2", "lzma"]


class NpzkitSettings(BaseSettings):
    """Main npzkit settings"""

    max_header_read: int = Field(default=MAX_V1_HEADER_SIZE, ge=16)
    stream_chunk_size: int = Field(default=64 * 1024, gt=0)
    write_batch_elements: int = Field(default=0x10000, gt=0)
    archive_compression: Compression = "deflated"

    loglevel: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        validation_alias=AliasChoices("NPZKIT_LOGLEVEL", "NPZKIT_LOG_LEVEL"),
    )

    model_config = SettingsConfigDict(
        env_prefix="NPZKIT_",
        case_sensitive=False,
        validate_assignment=True,
    )

    @field_validator("loglevel", mode="before")
    @classmethod
    def validate_loglevel(cls, v: Any) -> str:
        """Normalize and apply the logging level"""
        v = str(v).upper()
        logger.setLevel(v)
        return v

    def compression_method(self, name: "Compression | None" = None) -> int:
        """The zipfile constant for `name`, or for the configured default."""
        return _COMPRESSION_METHODS[name or self.archive_compression]


config = NpzkitSettings()


@contextmanager
def override(**kwargs: Any) -> Iterator[NpzkitSettings]:
    """
    Temporarily change settings.

    Usage:
        with override(stream_chunk_size=3):
            save_to_archive(...)
    """
    original = {key: getattr(config, key) for key in kwargs}
    try:
        for key, value in kwargs.items():
            setattr(config, key, value)
        yield config
    finally:
        for key, value in original.items():
            setattr(config, key, value)
