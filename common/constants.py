"""Project-wide constants (chunk size, wire field names, endpoints)."""

CHUNK_SIZE_BYTES: int = 10 * 1024 * 1024  # 10 MiB default chunk size

READ_BLOCK_SIZE: int = 64 * 1024

# Multipart field names expected by the upload endpoint
FIELD_FILE = "files"
FIELD_UPLOAD_ID = "client_id"
FIELD_PART_NUMBER = "part_number"
FIELD_TOTAL_PARTS = "total_parts"
FIELD_FILENAME = "original_filename"
FIELD_FILE_SIZE = "file_size"
FIELD_CHUNK_SIZE = "chunk_size"
FIELD_CHECKSUM = "checksum"
FIELD_CHECKSUM_ALGORITHM = "checksum_algorithm"

# The server reads the final-chunk flag under any one of these names
FINAL_CHUNK_FIELDS = ("completo", "is_last_chunk", "final_chunk", "last_part")

DEFAULT_UPLOAD_PATH = "/api/upload"
DEFAULT_FINALIZE_ENDPOINTS = ["/api/upload/complete", "/api/upload/finalize"]

SEARCH_PATH = "/search"
DOWNLOAD_PATH = "/obtenerfile"
HEALTH_PATH = "/health"
