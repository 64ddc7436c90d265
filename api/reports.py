import logging
from flask import Blueprint, request, jsonify

from dependencies import get_task_store
from extensions import limiter
from timezone_utils import format_task_date
from .auth import token_required
from .cache_utils import invalidate_impact_cache
from .error_utils import handle_exception, validation_error
from .pydantic_models import ReportWasteRequest
from .sanitization import sanitize_amount, sanitize_string

reports_bp = Blueprint('reports_bp', __name__)


@reports_bp.route('', methods=['POST'])
@token_required
@limiter.limit("20 per hour")
def report_waste(user_id):
    """Records a waste location; it becomes a pending collection task."""
    req_data = ReportWasteRequest.model_validate(request.get_json())
    amount = sanitize_amount(req_data.amount)
    if amount is None:
        return validation_error("amount must be a positive number of kilograms", {"amount": req_data.amount})

    try:
        task = get_task_store().create_task(
            location=sanitize_string(req_data.location, max_length=200),
            waste_type=sanitize_string(req_data.wasteType, max_length=80),
            amount=amount,
            date=format_task_date(),
        )
    except Exception as e:
        return handle_exception(e, "report_waste endpoint")

    invalidate_impact_cache()
    logging.info(f"User {user_id} reported waste, created task {task.id}")
    return jsonify(task.model_dump()), 201
