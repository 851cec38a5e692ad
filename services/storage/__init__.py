"""Storage: SQLAlchemy models and engine/session helpers.

- database.py: engine, session factory and the single table-provisioning path
- models.py: `scenarios` and `reports` tables
- cli.py: `init-db` command
"""
