"""
PartnerHub domain models.

Every model module imports ``db`` from here so a single
Flask-SQLAlchemy extension instance owns the metadata.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
