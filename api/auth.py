import logging
import datetime
from functools import wraps
from flask import Blueprint, current_app, request, jsonify
import jwt
from werkzeug.security import generate_password_hash, check_password_hash

from dependencies import get_user_directory
from extensions import limiter
from .error_utils import create_error_response, unauthorized_error
from .pydantic_models import AuthRequest, SignupRequest
from .sanitization import sanitize_string

auth_bp = Blueprint('auth_bp', __name__)

TOKEN_LIFETIME = datetime.timedelta(days=30)


# --- Helpers ---
def issue_token(user):
    secret = current_app.config['JWT_SECRET_KEY']
    return jwt.encode({
        'user_id': user.id, 'email': user.email,
        'exp': datetime.datetime.now(datetime.timezone.utc) + TOKEN_LIFETIME
    }, secret, algorithm="HS256")


def token_required(f):
    """Decodes the bearer token and passes the caller's id to the view as `user_id`."""
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get('Authorization')
        if not auth_header or not auth_header.startswith('Bearer '): return create_error_response("TOKEN_MISSING", status_code=401)
        token = auth_header.split(' ')[1]
        try:
            data = jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=["HS256"]); kwargs['user_id'] = int(data['user_id'])
        except (jwt.ExpiredSignatureError, jwt.InvalidTokenError, KeyError, ValueError): return create_error_response("TOKEN_INVALID", status_code=401)
        return f(*args, **kwargs)
    return decorated


# --- Endpoints ---
@auth_bp.route('/signup', methods=['POST'])
@limiter.limit("5 per hour")
def signup():
    req_data = SignupRequest.model_validate(request.get_json())
    users = get_user_directory()
    user = users.create_user(
        req_data.email, sanitize_string(req_data.name, max_length=80), generate_password_hash(req_data.password)
    )
    if user is None: return create_error_response("USER_EXISTS", status_code=409)
    logging.info(f"Created user {user.id}")
    return jsonify({"token": issue_token(user)}), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    req_data = AuthRequest.model_validate(request.get_json())
    user = get_user_directory().get_user_by_email(req_data.email)
    if user is None or not check_password_hash(user.passwordHash or '', req_data.password):
        return unauthorized_error("Invalid email or password.")
    return jsonify({"token": issue_token(user)}), 200
