import logging
import math
from flask import Blueprint, request, jsonify

from dependencies import get_task_store, get_verification_workflow
from errors import MissingInput, UpdateRejected, VerificationError
from extensions import limiter
from image_resizer import decode_base64_image, normalize_verification_image
from models import TaskStatus
from .auth import token_required
from .cache_utils import invalidate_impact_cache
from .error_utils import (
    VERIFICATION_STATUS_CODES, create_error_response, handle_exception, validation_error,
    verification_error_response,
)
from .pydantic_models import StatusChangeRequest, TaskPageResponse, TaskView, VerifyImageRequest

collect_bp = Blueprint('collect_bp', __name__)

PAGE_SIZE = 5

# Statuses a collector may request directly; `verified` is only reachable through verification.
SELF_SERVICE_STATUSES = (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED)


def paginate(items, page, page_size=PAGE_SIZE):
    """Slices one page out of the full list. `page` is clamped into range."""
    page_count = math.ceil(len(items) / page_size)
    page = min(max(page, 1), max(page_count, 1))
    start = (page - 1) * page_size
    return items[start:start + page_size], page, page_count


def available_action(task, user_id):
    if task.status == TaskStatus.PENDING:
        return "start_collection"
    if task.status in (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED):
        return "complete_and_verify" if task.collectorId == user_id else "in_progress_by_other"
    if task.status == TaskStatus.VERIFIED:
        return "reward_earned"
    return None


def to_view(task, user_id):
    return TaskView(**task.model_dump(), availableAction=available_action(task, user_id))


def _read_verification_image():
    uploaded = request.files.get('image')
    if uploaded is not None:
        image_bytes = uploaded.read()
    else:
        body = request.get_json(silent=True)
        if not body:
            raise MissingInput("No verification image was provided.")
        image_bytes = decode_base64_image(VerifyImageRequest.model_validate(body).image)
    return normalize_verification_image(image_bytes)


@collect_bp.route('/tasks', methods=['GET'])
@token_required
def list_tasks(user_id):
    try:
        page = int(request.args.get('page', 1))
    except ValueError:
        return validation_error("page must be an integer")
    try:
        tasks = get_task_store().list_tasks()
        page_tasks, page, page_count = paginate(tasks, page)
        response = TaskPageResponse(
            tasks=[to_view(t, user_id) for t in page_tasks],
            page=page,
            pageCount=page_count,
            totalTasks=len(tasks),
            hasPrevious=page > 1,
            hasNext=page < page_count,
        )
        return jsonify(response.model_dump()), 200
    except Exception as e:
        return handle_exception(e, "list_tasks endpoint")


@collect_bp.route('/tasks/mine', methods=['GET'])
@token_required
def list_my_tasks(user_id):
    try:
        tasks = get_task_store().list_tasks_for_user(user_id)
        return jsonify([to_view(t, user_id).model_dump() for t in tasks]), 200
    except Exception as e:
        return handle_exception(e, "list_my_tasks endpoint")


@collect_bp.route('/tasks/<int:task_id>/status', methods=['POST'])
@token_required
def change_status(user_id, task_id):
    req_data = StatusChangeRequest.model_validate(request.get_json())
    if req_data.status not in SELF_SERVICE_STATUSES:
        return create_error_response(
            "UPDATE_REJECTED", f"Status '{req_data.status}' cannot be set directly.",
            {"taskId": task_id, "requestedStatus": req_data.status}, status_code=409
        )
    try:
        task = get_task_store().update_status(task_id, req_data.status, user_id)
    except UpdateRejected as e:
        return verification_error_response(e)
    return jsonify(to_view(task, user_id).model_dump()), 200


@collect_bp.route('/tasks/<int:task_id>/verify', methods=['POST'])
@token_required
@limiter.limit("30 per hour")
def verify_collection(user_id, task_id):
    task = get_task_store().get_task(task_id)
    if task is None:
        return create_error_response("TASK_NOT_FOUND", status_code=404)

    # Don't spend an Oracle call on a task the caller could never verify.
    if task.status not in SELF_SERVICE_STATUSES or task.collectorId != user_id:
        return create_error_response(
            "UPDATE_REJECTED", "Only the collector who claimed this task can verify it.",
            {"taskId": task_id, "currentStatus": task.status}, status_code=409
        )

    try:
        image = _read_verification_image()
    except VerificationError as e:
        return verification_error_response(e)

    outcome = get_verification_workflow().verify(task, image, user_id)
    if outcome.success:
        invalidate_impact_cache()
        return jsonify(outcome.model_dump()), 200

    details = dict(outcome.details)
    if outcome.failedChecks:
        details["failedChecks"] = outcome.failedChecks
    if outcome.judgment is not None:
        details["judgment"] = outcome.judgment.model_dump()
    logging.info(f"Verification of task {task_id} by user {user_id} failed: {outcome.error_code}")
    return create_error_response(
        outcome.error_code, outcome.message, details,
        status_code=VERIFICATION_STATUS_CODES.get(outcome.error_code, 500)
    )


def health_check():
    """Performs a non-destructive health check for the collection module."""
    return get_task_store().health_check()
