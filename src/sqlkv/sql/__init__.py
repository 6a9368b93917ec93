"""
sqlkv.sql

SQL text and execution helpers.

Responsibilities:
- Render statement templates against table metadata.
- Execute statements through a narrow executor contract.
"""

# Package marker.
