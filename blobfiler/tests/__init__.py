"""
Tests Module: Unit and Integration Tests

Test Coverage:
    - Core types (Record, Lazy, Result), errors and configuration
    - Path predicates
    - S3 filer operations against a moto bucket
    - Multipart upload stream (chunking, ordering, abort, temp-file hygiene)
    - Command line entry point
"""
