"""
Unbound Flask extension instances.

Every extension used by the project is created here without an application
and bound later in ``create_app``. Models, blueprints and tasks import them
from this module, which keeps them free of circular imports on ``app.py``.
"""

from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_mail import Mail
from apscheduler.schedulers.background import BackgroundScheduler
from flask_wtf.csrf import CSRFProtect


db = SQLAlchemy()
login_manager = LoginManager()
mail = Mail()
scheduler = BackgroundScheduler()
csrf = CSRFProtect()
