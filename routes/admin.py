from flask import Blueprint, jsonify, request, current_app
from extensions import db
from models import AuditLog
from decorators import permission_required
from utils import log_admin_activity
from tasks import run_distribution_cycle
from withdrawals import pending_withdrawals

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

# --- Finance Management ---
@admin_bp.route('/withdrawals')
@permission_required('manage_withdrawals')
def withdrawals():
    return jsonify({'requests': [tx.to_dict() for tx in pending_withdrawals(db.session)]})

@admin_bp.route('/distribute-profits', methods=['POST'])
@permission_required('manage_profits')
def distribute_profits():
    data = request.get_json(silent=True) or {}
    result = run_distribution_cycle(current_app.config, db.session,
                                    period_key=data.get('periodKey'))
    log_admin_activity('Distribute Profit',
                       f'Manual run {result.period_key}: {result.records_created} payouts')
    return jsonify({
        'success': True,
        'message': f'Manual profit distribution completed. {result.records_created} payouts.',
        'periodKey': result.period_key,
        'usersUpdated': result.users_updated,
        'recordsCreated': result.records_created,
        'skipped': result.skipped,
        'failed': result.failed
    })

# --- Logs ---
@admin_bp.route('/logs')
@permission_required('view_logs')
def logs():
    entries = AuditLog.query.order_by(AuditLog.timestamp.desc()).limit(100).all()
    return jsonify({'logs': [{
        'id': log.id,
        'userId': log.user_id,
        'action': log.action,
        'details': log.details,
        'ipAddress': log.ip_address,
        'timestamp': log.timestamp.isoformat() if log.timestamp else None
    } for log in entries]})
