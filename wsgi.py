"""
WSGI entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi send-reminders
"""

from partnerhub import create_app

app = create_app()
