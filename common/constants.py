"""Project-wide constants (chunk boundary, cipher layout, default paths)."""

CHUNK_SIZE_BYTES: int = 64 * 1024  # plaintext bytes per chunk before encryption

# AES-CBC with PKCS#7 padding end-to-end: 16-byte blocks, one 16-byte IV per chunk
CIPHER_BLOCK_SIZE_BYTES: int = 16
IV_SIZE_BYTES: int = 16

CHUNK_FILE_SUFFIX: str = ".bin"
MAX_CONTENT_ID_LENGTH: int = 128

DEFAULT_CONTENT_STORE_PATH: str = "./data/content"
DEFAULT_DATABASE_PATH: str = "./data/content/metadata.db"

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"
