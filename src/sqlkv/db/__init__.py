"""
sqlkv.db

Persistence package (SQLAlchemy Core).

Responsibilities:
- Provide engine creation, unit-of-work scoping and the key-value table definition.
"""

# Package marker.
