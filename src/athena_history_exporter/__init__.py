"""Package initialization for athena-history-exporter.

Exports Athena query execution metadata to partitioned, gzip-compressed JSON
logs on S3, incrementally from one run to the next.
"""

__all__ = []
