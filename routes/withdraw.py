from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from extensions import db
from exceptions import ValidationError
from decorators import permission_required
from models import Transaction
from utils import log_admin_activity, notify_withdrawal_outcome
from withdrawals import submit_withdrawal, approve_withdrawal, withdrawal_history

withdraw_bp = Blueprint('withdraw', __name__)

def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data

@withdraw_bp.route('/withdraw', methods=['POST'])
@login_required
def create_withdrawal():
    data = _json_body()
    amount = data.get('amount')
    wallet_address = data.get('walletAddress')
    if not amount or not wallet_address:
        raise ValidationError('Amount and wallet address are required')

    try:
        receipt = submit_withdrawal(
            db.session, current_user.id, amount, wallet_address,
            fee_rate=current_app.config['WITHDRAWAL_FEE_RATE']
        )
    except SQLAlchemyError:
        return jsonify({'error': 'Failed to create withdrawal request'}), 500

    return jsonify({
        'success': True,
        'message': 'Withdrawal request submitted successfully. Please wait for admin approval.',
        'transactionId': receipt.transaction_id,
        'requestedAmount': receipt.amount,
        'netAmount': receipt.net_amount,
        'withdrawalFee': receipt.fee,
        'status': receipt.status
    })

@withdraw_bp.route('/withdraw', methods=['GET'])
@login_required
def list_withdrawals():
    history = withdrawal_history(db.session, current_user.id)
    return jsonify({'withdrawals': [tx.to_dict() for tx in history]})

@withdraw_bp.route('/withdraw', methods=['PUT'])
@permission_required('manage_withdrawals')
def decide_withdrawal():
    data = _json_body()
    transaction_id = data.get('transactionId')
    approve = data.get('approve')
    if not transaction_id or not isinstance(approve, bool):
        raise ValidationError('Transaction ID and approval status are required')
    try:
        transaction_id = int(transaction_id)
    except (TypeError, ValueError):
        raise ValidationError('Invalid transaction ID')

    gateway = current_app.extensions['transfer_gateway']
    try:
        outcome = approve_withdrawal(
            db.session, gateway, transaction_id, approve,
            destination_override=data.get('walletAddress') or None
        )
    except SQLAlchemyError as e:
        current_app.logger.error(f"Error processing withdrawal approval {transaction_id}: {e}")
        return jsonify({'error': 'Failed to process withdrawal approval'}), 500

    tx = db.session.get(Transaction, transaction_id)
    log_admin_activity('Approve Withdrawal' if outcome.tx_hash else 'Reject Withdrawal',
                       f"WD {transaction_id}: {outcome.status} {outcome.tx_hash or outcome.error or ''}".strip())
    notify_withdrawal_outcome(tx, outcome)

    if outcome.tx_hash:
        return jsonify({'success': True, 'message': outcome.message, 'txHash': outcome.tx_hash})
    if outcome.error:
        return jsonify({
            'success': False,
            'status': outcome.status,
            'message': outcome.message,
            'error': outcome.error
        })
    return jsonify({'success': True, 'status': outcome.status, 'message': outcome.message})
