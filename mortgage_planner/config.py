from __future__ import annotations

import os


API_KEY = os.getenv("API_KEY")

DEFAULT_RATE_LIMIT = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")
EXPORT_RATE_LIMIT = os.getenv("RATE_LIMIT_EXPORT", "15/minute")
MAX_PRINCIPAL = float(os.getenv("MAX_PRINCIPAL", "100000000"))
MAX_ANNUAL_RATE = float(os.getenv("MAX_ANNUAL_RATE", "30"))
MAX_EXPORT_BYTES = int(os.getenv("MAX_EXPORT_BYTES", str(6 * 1024 * 1024)))

# 剩余本金 <= 该值（元）视为已还清
PAID_OFF_THRESHOLD = float(os.getenv("PAID_OFF_THRESHOLD", "0.1"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
COMMENTARY_MODEL = os.getenv("COMMENTARY_MODEL", "claude-haiku-4-5")
COMMENTARY_MAX_TOKENS = int(os.getenv("COMMENTARY_MAX_TOKENS", "1500"))
