"""
Flask-Migrate / Alembic entry point.

Usage:
    flask db upgrade
    flask db migrate -m "description"
    flask purge-expired
"""

from solarhub import create_app

app = create_app()
