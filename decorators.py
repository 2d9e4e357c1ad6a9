from functools import wraps
from flask import current_app
from flask_login import current_user
from exceptions import Forbidden

def permission_required(permission_name):
    """
    Custom decorator to check user permissions before accessing a route.
    Unauthenticated requests get the login manager's 401; authenticated
    users without the permission get a 403.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # 1. Check if user is authenticated
            if not current_user.is_authenticated:
                return current_app.login_manager.unauthorized()

            # 2. Admin role or an explicit grant
            if current_user.has_permission(permission_name):
                return f(*args, **kwargs)

            # 3. Access denied
            current_app.logger.warning(
                f"User {current_user.id} denied '{permission_name}'"
            )
            raise Forbidden()

        return decorated_function
    return decorator
