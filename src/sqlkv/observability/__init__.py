"""
sqlkv.observability

Observability package.

Responsibilities:
- Structured logging configuration.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Statement latency is logged by the executor; metrics exporters can hook in here.
