import hmac
from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from extensions import csrf, db
from tasks import run_distribution_cycle

cron_bp = Blueprint('cron', __name__, url_prefix='/cron')
csrf.exempt(cron_bp)

def _authorized():
    secret = current_app.config.get('CRON_SECRET')
    if not secret:
        return None
    header = request.headers.get('Authorization', '')
    return hmac.compare_digest(header.encode(), f"Bearer {secret}".encode())

@cron_bp.route('/distribute-profits', methods=['GET', 'POST'])
def distribute_profits():
    authorized = _authorized()
    if authorized is None:
        current_app.logger.error('CRON_SECRET is not configured')
        return jsonify({'error': 'Cron secret is not configured'}), 500
    if not authorized:
        return jsonify({'error': 'Unauthorized'}), 401

    now = datetime.utcnow()
    current_app.logger.info(f"Cron job triggered profit distribution at: {now.isoformat()}")
    try:
        result = run_distribution_cycle(current_app.config, db.session, now=now)
    except Exception as e:
        current_app.logger.error(f"Error in cron profit distribution: {e}")
        return jsonify({'error': 'Failed to distribute profits'}), 500

    return jsonify({
        'success': True,
        'message': 'Profit distribution completed',
        'timestamp': now.isoformat(),
        'periodKey': result.period_key,
        'usersUpdated': result.users_updated,
        'recordsCreated': result.records_created
    })
