"""Infrastructure layer for attachments app.

This package contains integrations with external systems:
- Storage backends (local file system, S3-compatible object storage)
- Temp file staging
- Filename and MIME type metadata

Keep infrastructure concerns separate from lifecycle logic.
"""
