"""Application constants."""

USER_AGENT = "mining-claims-precompile/1.0 (+static site build)"
REBUILD_MODES = ("cache", "everything", "highlights")
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
LAST_EVENT_KEY = "ultimo_evento"
PHASE_KEY = "fase"
SUBSTANCE_KEY = "substancia"
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "region",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "items_in",
    "items_out",
    "error_code",
    "message",
)
