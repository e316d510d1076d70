"""Local configuration for annodoc."""

from __future__ import annotations

import os


DEFAULT_SAVE_DEBOUNCE_S = 1.0
DEFAULT_STORE_URL = "http://localhost:54321"
DEFAULT_STORE_TIMEOUT_S = 10.0
DEFAULT_STORE_MAX_RETRIES = 2
DEFAULT_STORE_BACKOFF_S = 0.5
DEFAULT_USER_AGENT = "annodoc/0.1"
DEFAULT_HISTORY_LIMIT = 100

# Quiet period after the last edit before document content is written.
ANNODOC_SAVE_DEBOUNCE_S = float(os.getenv("ANNODOC_SAVE_DEBOUNCE_S", str(DEFAULT_SAVE_DEBOUNCE_S)))
ANNODOC_STORE_URL = os.getenv("ANNODOC_STORE_URL", DEFAULT_STORE_URL)
ANNODOC_STORE_API_KEY = os.getenv("ANNODOC_STORE_API_KEY", "")
ANNODOC_STORE_TIMEOUT_S = float(os.getenv("ANNODOC_STORE_TIMEOUT_S", str(DEFAULT_STORE_TIMEOUT_S)))
ANNODOC_STORE_MAX_RETRIES = int(os.getenv("ANNODOC_STORE_MAX_RETRIES", str(DEFAULT_STORE_MAX_RETRIES)))
ANNODOC_STORE_BACKOFF_S = float(os.getenv("ANNODOC_STORE_BACKOFF_S", str(DEFAULT_STORE_BACKOFF_S)))
ANNODOC_USER_AGENT = os.getenv("ANNODOC_USER_AGENT", DEFAULT_USER_AGENT)
# Opt-in: shift stored comment anchors when edits move the text they point at.
ANNODOC_REANCHOR_COMMENTS = os.getenv("ANNODOC_REANCHOR_COMMENTS", "").lower() in {"1", "true", "yes"}
# Earlier document states a session keeps for undo.
ANNODOC_HISTORY_LIMIT = int(os.getenv("ANNODOC_HISTORY_LIMIT", str(DEFAULT_HISTORY_LIMIT)))
