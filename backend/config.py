import os
from dotenv import load_dotenv

load_dotenv()

# ── Speller Grid ─────────────────────────────────────────────
# Rows separated by "|"; one character per cell.
DEFAULT_GRID = "ABCDEF|GHIJKL|MNOPQR|STUVWX|YZ- .↵"
SPELLER_GRID = os.getenv("SPELLER_GRID", DEFAULT_GRID)

# ── Flash Stimulus ───────────────────────────────────────────
FLASH_INTERVAL_MS = int(os.getenv("FLASH_INTERVAL_MS", "1000"))  # one row/col flash per interval
FLASH_LOG_SIZE = int(os.getenv("FLASH_LOG_SIZE", "64"))          # trailing flash events retained

# ── Selection Decoding ───────────────────────────────────────
PROBABILITY_THRESHOLD = float(os.getenv("PROBABILITY_THRESHOLD", "0.3"))  # strict ">" cutoff
TRIGGER_MODE = os.getenv("TRIGGER_MODE", "level").lower()  # "level" | "edge"
DECODE_REFRACTORY_MS = int(os.getenv("DECODE_REFRACTORY_MS", "0"))  # 0 disables

# ── Probability Source ───────────────────────────────────────
SIMULATE_PROBABILITY = os.getenv("SIMULATE_PROBABILITY", "false").lower() == "true"
SIM_SAMPLE_RATE_HZ = float(os.getenv("SIM_SAMPLE_RATE_HZ", "4"))
SIM_SPIKE_CHANCE = 0.08   # chance a simulated sample jumps above threshold
LSL_STREAM_TYPE = os.getenv("LSL_STREAM_TYPE", "Probability")
LSL_RESOLVE_TIMEOUT = 10.0  # seconds

# ── Redis ─────────────────────────────────────────────────────
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
REDIS_EVENTS = os.getenv("REDIS_EVENTS", "false").lower() == "true"
REDIS_EVENT_STREAM = "speller:events"
REDIS_EVENT_MAXLEN = 1000

# ── FastAPI ───────────────────────────────────────────────────
FASTAPI_HOST = os.getenv("FASTAPI_HOST", "0.0.0.0")
FASTAPI_PORT = int(os.getenv("FASTAPI_PORT", "8000"))
