"""
Application-wide constants for Conductor.

This module defines constants used throughout the application to ensure
consistency and maintainability.
"""

# Application directories
APP_NAME: str = "conductor"
PROJECT_DIR_NAME: str = ".conductor"
SETTINGS_FILE_NAME: str = "settings.json"

# Memory files
PROJECT_MEMORY_FILE_NAME: str = "CONDUCTOR.md"
USER_MEMORY_FILE_NAME: str = "memory.md"

# Hooks
DEFAULT_HOOK_TIMEOUT_MS: int = 10_000
HOOK_PROJECT_DIR_VAR: str = "CONDUCTOR_PROJECT_DIR"
HOOK_BLOCKING_EXIT_CODE: int = 2
HOOK_FAILURE_FALLBACK_MESSAGE: str = "Hook execution failed"

# Permissions
RESTRICTED_TOOLS: frozenset[str] = frozenset(
    {"Write", "Edit", "MultiEdit", "Delete", "Bash"},
)
ABORTED_BY_USER_MESSAGE: str = "aborted by user"
PERMISSION_CALLBACK_TIMEOUT_S: float = 300.0

# Model / retry
DEFAULT_MODEL: str = "gpt-4o"
DEFAULT_TOKEN_LIMIT: int = 64_000
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_BASE_DELAY: float = 1.0
DEFAULT_RETRY_MAX_DELAY: float = 60.0

# Compression keeps this many text/tool blocks uncompressed
COMPRESS_KEEP_LAST_BLOCKS: int = 7

# File operations
DEFAULT_ENCODING: str = "utf-8"
DEFAULT_BINARY_CHECK_CHUNK_SIZE: int = 8192
BINARY_MARKER: bytes = b"\x00"
MAX_TOOL_OUTPUT_BYTES: int = 100 * 1024
