"""
Storage module: Filer contract and the S3-compatible backend.

Components:
- Filer: abstract path-addressed operation set
- S3Filer: object-store backend with directory emulation
- MultipartUploadStream: buffered write stream with background part uploads
- RegexPathPredicate: record selection for callers
"""

from blobfiler.storage.protocols import Filer
from blobfiler.storage.multipart import MultipartUploadStream
from blobfiler.storage.s3_filer import S3Filer
from blobfiler.storage.predicates import RegexPathPredicate

__all__ = [
    "Filer",
    "MultipartUploadStream",
    "S3Filer",
    "RegexPathPredicate",
]
