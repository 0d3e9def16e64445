from functools import wraps
from flask import request, jsonify, g
from user.jwt_utils import decode_access_token, get_token_from_header
from user.user import User

def tenant_required(f):
    """
    Resolve the caller's tenant from the Bearer token.

    401 when the token is missing or invalid, 403 when the token is valid
    but no user row exists yet (signup not completed).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_token_from_header(request)
        if not token:
            return jsonify({
                'error': 'Missing or invalid Authorization header',
                'error_code': 'TOKEN_MISSING'
            }), 401

        payload = decode_access_token(token)
        if not payload:
            return jsonify({
                'error': 'Invalid or expired access token',
                'error_code': 'TOKEN_INVALID'
            }), 401

        user = User.query.filter_by(auth_id=payload['sub']).first()
        if not user:
            return jsonify({
                'error': 'User not onboarded. Complete signup first.',
                'error_code': 'USER_NOT_FOUND'
            }), 403

        g.current_user = {
            'user_id': user.id,
            'tenant_id': user.tenant_id,
            'auth_id': user.auth_id,
        }
        return f(*args, **kwargs)
    return decorated_function

def get_current_user():
    return getattr(g, 'current_user', None)

def current_tenant_id():
    return g.current_user['tenant_id']
