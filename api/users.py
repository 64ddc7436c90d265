from flask import Blueprint, jsonify

from dependencies import get_ledger, get_user_directory
from .auth import token_required
from .error_utils import create_error_response, handle_exception
from .pydantic_models import ProfileResponse

users_bp = Blueprint('users_bp', __name__)


@users_bp.route('/me', methods=['GET'])
@token_required
def get_my_profile(user_id):
    try:
        user = get_user_directory().get_user(user_id)
        if user is None:
            return create_error_response("USER_NOT_FOUND", status_code=404)
        profile = ProfileResponse(
            userId=user.id, email=user.email, name=user.name,
            balance=get_ledger().get_balance(user_id),
        )
        return jsonify(profile.model_dump()), 200
    except Exception as e:
        return handle_exception(e, "get_my_profile endpoint")
