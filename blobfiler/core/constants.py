"""
System-Wide Constants for the Object-Store Filer

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# SIZE AND TIME UNITS
# =============================================================================
KB: Final[int] = 1024
MB: Final[int] = 1024 * KB
GB: Final[int] = 1024 * MB

MS_PER_S: Final[int] = 1000

# =============================================================================
# PATH CONVENTIONS
# =============================================================================
SEPARATOR: Final[str] = "/"
ROOT_PATH: Final[str] = "/"

# =============================================================================
# UPLOAD DEFAULTS
# =============================================================================
DEFAULT_PART_SIZE: Final[int] = 5 * MB
DEFAULT_UPLOAD_THREADS: Final[int] = 1
TEMP_FILE_PREFIX: Final[str] = "blobfiler-"
TEMP_FILE_SUFFIX: Final[str] = ".part"

# =============================================================================
# OBJECT METADATA
# =============================================================================
DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"
MTIME_METADATA_KEY: Final[str] = "mtime"

# Largest object a single copy_object call accepts.
MAX_COPY_OBJECT_BYTES: Final[int] = 5 * GB

# head_object fields a metadata-replacing copy must restate to keep them.
COPIED_OBJECT_HEADERS: Final[tuple[str, ...]] = (
    "CacheControl",
    "ContentDisposition",
    "ContentEncoding",
    "ContentLanguage",
    "ContentType",
    "Expires",
    "StorageClass",
    "ServerSideEncryption",
    "SSEKMSKeyId",
    "WebsiteRedirectLocation",
)

# =============================================================================
# ENVIRONMENT
# =============================================================================
ENV_PREFIX: Final[str] = "BLOBFILER"
