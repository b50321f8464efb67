"""Questionnaire flow constants shared across the SDK.

These values are referenced by the catalog, evaluator, flow manager and
session orchestrator.  They mirror conventions encoded in the bundled
catalog under ``data/``.

Timing and storage constants can be overridden via environment variables
so that deployments can tune write volume without code changes.
"""

import os

# Question categories in their canonical order.  Only ``essential`` questions
# form the initial schedule; the others are reachable through branching.
CATEGORIES: list[str] = ["essential", "optimization", "personalization"]

# Namespaced key under which the in-progress draft is stored.  The key-value
# store is shared with unrelated features, so the engine never touches any
# other key.  Overridable via QUESTIONNAIRE_DRAFT_KEY env var.
DRAFT_STORAGE_KEY = os.getenv("QUESTIONNAIRE_DRAFT_KEY", "questionnaire_draft")

# Trailing debounce window for local draft writes, in seconds.
DRAFT_DEBOUNCE_SECONDS = float(os.getenv("DRAFT_DEBOUNCE_SECONDS", "0.3"))

# Remote sync runs on its own timer, started only after a successful local
# write, and retries with exponential backoff.
SYNC_DEBOUNCE_SECONDS = float(os.getenv("SYNC_DEBOUNCE_SECONDS", "1.2"))
SYNC_MAX_ATTEMPTS = int(os.getenv("SYNC_MAX_ATTEMPTS", "3"))
SYNC_RETRY_MIN_SECONDS = float(os.getenv("SYNC_RETRY_MIN_SECONDS", "0.5"))
SYNC_RETRY_MAX_SECONDS = float(os.getenv("SYNC_RETRY_MAX_SECONDS", "8"))

# Default icon per feedback kind, used when a template does not set one.
FEEDBACK_ICONS: dict[str, str] = {
    "positive": "✨",
    "suggestion": "💡",
    "insight": "🎯",
    "warning": "⚠️",
}

# Shown when a feedback template renders to an empty message (e.g. an
# ``{insight}`` template for an option without insight metadata).
GENERIC_FEEDBACK_MESSAGE = "Great choice!"

# Version stamped on output records when the catalog does not declare one.
DEFAULT_CATALOG_VERSION = "1.0"
