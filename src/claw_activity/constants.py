"""Centralized constants for Claw Activity Stream."""

# Discord
MAX_DISCORD_MESSAGE_LENGTH = 2000
EMBED_FOOTER_TEXT = "Claw Activity Stream"

# Delivery
DEFAULT_RATE_LIMIT_PER_MINUTE = 10
RATE_LIMIT_WINDOW_SECONDS = 60.0
DEFAULT_POST_DELAY_SECONDS = 0.5
DEFAULT_BACKOFF_SECONDS = 1.0
WEBHOOK_TIMEOUT_SECONDS = 10

# Inbound webhook
WEBHOOK_SECRET_HEADER = "X-Webhook-Secret"

# Truncation caps applied when events are parsed
ELLIPSIS = "..."
THINKING_MAX_CHARS = 300
TEXT_OUTPUT_MAX_CHARS = 300
USER_MESSAGE_MAX_CHARS = 200
RAW_LINE_MAX_CHARS = 200
SESSION_LINE_MAX_CHARS = 100

# Session files
SESSION_FILE_SUFFIX = ".jsonl"
DELETED_SESSION_MARKER = ".deleted."
TOOL_CALL_MEMORY_SIZE = 1024
