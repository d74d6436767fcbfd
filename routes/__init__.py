from .health import health_bp
from .auth import auth_bp
from .admin import admin_bp
from .client import client_bp
