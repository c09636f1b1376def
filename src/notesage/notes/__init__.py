"""Notes ingestion: loading, segmentation, indexing and storage."""
