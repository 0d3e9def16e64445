import jwt
from datetime import datetime, timedelta
from flask import current_app

# Token Validity Period
ACCESS_TOKEN_EXPIRATION_DAYS = 1

def generate_access_token(auth_id, email=None, days=ACCESS_TOKEN_EXPIRATION_DAYS):
    """Issue an access token the way the identity provider does (used by tests and tooling)"""
    now = datetime.utcnow()
    payload = {
        'sub': str(auth_id),
        'email': email,
        'iat': now,
        'exp': now + timedelta(days=days),
    }
    return jwt.encode(
        payload,
        current_app.config['JWT_SECRET_KEY'],
        algorithm=current_app.config['JWT_ALGORITHM'],
    )

def decode_access_token(token):
    """Decode and validate access token; None when invalid or expired"""
    try:
        payload = jwt.decode(
            token,
            current_app.config['JWT_SECRET_KEY'],
            algorithms=[current_app.config['JWT_ALGORITHM']],
        )
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
    if not payload.get('sub'):
        return None
    return payload

def get_token_from_header(request):
    """Extract token from Authorization header"""
    auth_header = request.headers.get('Authorization')
    if auth_header and auth_header.startswith('Bearer '):
        return auth_header[7:].strip() or None
    return None
