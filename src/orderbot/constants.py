"""Compile-time constants for the orderbot package.

These are values baked into code that change only on code updates,
NOT between environments. For runtime settings, see config.py.
"""

# ──────────────────────────────────────────────────────────────────────
# Message Queue
# ──────────────────────────────────────────────────────────────────────
QUEUE_MAX_RETRIES = 3
QUEUE_BASE_RETRY_DELAY = 1.0  # seconds → 1s, 2s, 4s

# ──────────────────────────────────────────────────────────────────────
# Rate Limiting
# ──────────────────────────────────────────────────────────────────────
RATE_LIMIT_WINDOW = 60.0  # seconds
RATE_LIMIT_MAX_MESSAGES = 30

# ──────────────────────────────────────────────────────────────────────
# Conversation Context Store
# ──────────────────────────────────────────────────────────────────────
MAX_HISTORY_TURNS = 20
MAX_CONTEXTS = 10_000
CONTEXT_TTL = 24 * 60 * 60  # seconds of inactivity before a context is swept

# ──────────────────────────────────────────────────────────────────────
# Orders
# ──────────────────────────────────────────────────────────────────────
DEFAULT_COUNTRY = "Australia"
CANCELLABLE_STATUSES = ("PENDING", "CONFIRMED")

# ──────────────────────────────────────────────────────────────────────
# LLM
# ──────────────────────────────────────────────────────────────────────
DEFAULT_PROVIDER = "openrouter"
DEFAULT_MODEL = "openai/gpt-3.5-turbo"
DEFAULT_ADVANCED_MODEL = "openai/gpt-4o"
DEFAULT_VISION_MODEL = "openai/gpt-4.1-mini"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000
DEFAULT_COMPLEXITY_THRESHOLD = 0.7
LLM_MAX_RETRIES = 3
LLM_RETRY_DELAY = 1.0  # seconds, fixed
LLM_TIMEOUT = 120.0
DEFAULT_IMAGE_PROMPT = "What is in this image?"

# ──────────────────────────────────────────────────────────────────────
# WhatsApp Cloud API
# ──────────────────────────────────────────────────────────────────────
WHATSAPP_GRAPH_URL = "https://graph.facebook.com/v19.0"
WHATSAPP_TIMEOUT = 15.0

# ──────────────────────────────────────────────────────────────────────
# Server
# ──────────────────────────────────────────────────────────────────────
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080

# ──────────────────────────────────────────────────────────────────────
# Config
# ──────────────────────────────────────────────────────────────────────
CONFIG_FILENAME = "configs/config.json"
CONFIG_PATH_ENV = "ORDERBOT_CONFIG"  # overrides the config.json location

# ──────────────────────────────────────────────────────────────────────
# Fixed user-facing replies
# ──────────────────────────────────────────────────────────────────────
RATE_LIMITED_REPLY = (
    "You have sent too many messages. "
    "Please wait a moment before sending more messages."
)
ERROR_REPLY = (
    "Sorry, there was an error processing your message. Please try again later."
)
TOOLS_UNAVAILABLE_NOTICE = "(Tools are currently unavailable. Please try again later.)"
