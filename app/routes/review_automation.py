"""
Review automation admin API.

Settings, statistics and manual review request triggers for one company.
"""
from flask import Blueprint, current_app, jsonify, request

from app.services import get_review_automation
from app.utils import require_api_key

review_automation_bp = Blueprint('review_automation', __name__)


# ---------------------------------------------------------------------------
# GET /api/review-automation/<company_id> - settings (created on first read)
# ---------------------------------------------------------------------------
@review_automation_bp.route('/<company_id>', methods=['GET'])
@require_api_key
def get_settings(company_id):
    automation = get_review_automation(current_app)
    settings = automation.settings_provider.get(company_id)
    return jsonify(settings.to_dict()), 200


# ---------------------------------------------------------------------------
# PUT /api/review-automation/<company_id> - update settings
# ---------------------------------------------------------------------------
@review_automation_bp.route('/<company_id>', methods=['PUT'])
@require_api_key
def update_settings(company_id):
    """
    Body JSON: any subset of the settings fields, e.g.
        {"first_follow_up_delay": 4, "enable_sms_requests": true}
    """
    data = request.get_json(silent=True)
    if data is None:
        return jsonify({'error': 'Request body is required'}), 400

    automation = get_review_automation(current_app)
    settings = automation.settings_provider.update(company_id, data)
    return jsonify(settings.to_dict()), 200


# ---------------------------------------------------------------------------
# GET /api/review-automation/<company_id>/stats
# ---------------------------------------------------------------------------
@review_automation_bp.route('/<company_id>/stats', methods=['GET'])
@require_api_key
def get_stats(company_id):
    automation = get_review_automation(current_app)
    return jsonify(automation.service.get_stats(company_id)), 200


# ---------------------------------------------------------------------------
# POST /api/review-automation/trigger-request/<check_in_id>
# ---------------------------------------------------------------------------
@review_automation_bp.route('/trigger-request/<check_in_id>', methods=['POST'])
@require_api_key
def trigger_request(check_in_id):
    """Create a review request for a check-in; the next pass sends it"""
    automation = get_review_automation(current_app)
    status = automation.service.create_request_from_check_in(check_in_id)
    if status is None:
        return jsonify({'error': 'Check-in does not qualify for a review request'}), 400

    return jsonify({'success': True, 'review_status': status.to_dict()}), 201
