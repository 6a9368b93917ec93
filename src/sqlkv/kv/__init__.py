"""
sqlkv.kv

Key-value engines.

Responsibilities:
- Provide generic and native-upsert write engines with optimistic versioning.
- Provide primary-only and replica-aware read engines.
"""

# Package marker; engines are imported directly from submodules.


# --- Module Notes -----------------------------------------------------------
# Engines hold no per-call state; one instance can serve many threads and connections.
