"""
KPI Tracker: database models.

``db`` is the single Flask-SQLAlchemy handle shared by every model module.
Model modules are imported by ``create_app`` so their tables are registered
on ``db.metadata`` before ``create_all`` runs.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
