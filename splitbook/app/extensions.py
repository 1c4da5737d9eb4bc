"""
extensions.py — Flask extension singletons.

Created unbound and attached in create_app() via init_app(), so the test
suite and Alembic can each build their own app:

    from splitbook.app.extensions import db, ma
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

# Models subclass db.Model; services receive db.session from the routes.
db = SQLAlchemy()

# Bound in the factory only. Request schemas in app/schemas/ subclass
# marshmallow.Schema, never ma.Schema: ma.Schema needs an app context and
# the unit tests load schemas without one.
ma = Marshmallow()
