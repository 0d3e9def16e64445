from .user import User
from .jwt_middleware import tenant_required, get_current_user, current_tenant_id

__all__ = ['User', 'tenant_required', 'get_current_user', 'current_tenant_id']
