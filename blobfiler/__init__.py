"""
Object-Store Filer

A path-addressed filesystem abstraction over S3-compatible object stores:
- Record: metadata snapshot of a file or emulated directory
- Filer: backend-independent operation set
- S3Filer: object-store backend
- MultipartUploadStream: atomic writes with background multipart upload

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from blobfiler.core.types import Result, Ok, Err, Record
from blobfiler.core.errors import (
    FilerError,
    StorageError,
    UnsupportedOperationError,
    ConfigurationError,
)
from blobfiler.core.config import FilerConfig
from blobfiler.storage import (
    Filer,
    S3Filer,
    MultipartUploadStream,
    RegexPathPredicate,
)

__all__ = [
    # Version
    "__version__",
    # Result container
    "Result",
    "Ok",
    "Err",
    # Records
    "Record",
    # Errors
    "FilerError",
    "StorageError",
    "UnsupportedOperationError",
    "ConfigurationError",
    # Config
    "FilerConfig",
    # Storage
    "Filer",
    "S3Filer",
    "MultipartUploadStream",
    "RegexPathPredicate",
]
