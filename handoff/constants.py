from __future__ import annotations

# ──────────────────────────────────────────────────────────────────────────────
# Defaults shared by the workers, the orchestrator and the config layer
# ──────────────────────────────────────────────────────────────────────────────
DEFAULT_SENTINEL: int = -1          # poison pill, must never be produced
DEFAULT_CAPACITY: int = 5
DEFAULT_POLL_TIMEOUT: float = 2.0   # seconds between consumer stop checks
SENTINEL_OFFER_TIMEOUT: float = 0.5  # orchestrator re-checks consumers this often
JOIN_POLL_INTERVAL: float = 0.1     # orchestrator re-checks a producer join this often
