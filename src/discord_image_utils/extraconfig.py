# extraconfig.py
# Static limits and defaults used across multiple modules

# Fetch limits
MAX_REDIRECTS = 10
MAX_IMAGE_BYTES = 50 * 1024 * 1024  # 50 MiB, hard cap per download
DEFAULT_TIMEOUT_MS = 30000
CHUNK_SIZE = 64 * 1024

# Content types accepted from remote hosts (parameters after ";" are ignored)
ALLOWED_IMAGE_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/pjpeg",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/tiff",
    "image/avif",
})

# Retry defaults
RETRY_MAX_ATTEMPTS = 3
RETRY_BASE_DELAY_MS = 1000
RETRY_MAX_DELAY_MS = 10000
RETRY_BACKOFF_FACTOR = 2

# Image processing limits
MAX_RENDER_DIM = 1200  # frames get downscaled so their largest side fits this
DEFAULT_CANVAS_SIZE = 480

# File extension blacklist for image commands
EXT_BLACKLIST = (".mp4", ".webm", ".MP4", ".WEBM", ".mp3", ".ogg", ".wav", ".mov", ".zip", ".7z", ".rar", ".db", ".exe", ".msi")

# Alpha config, turns on trace logging by default
ALPHA = False
