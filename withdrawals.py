"""
Withdrawal workflow: submission, admin decision and listings.

A submission reserves the gross amount right away. The admin decision ends
in exactly one of two ledger states: completed with the reservation kept, or
rejected with the reservation refunded. A failed on-chain transfer always
takes the refund path.
"""

import logging
from collections import namedtuple
from decimal import Decimal, InvalidOperation
from sqlalchemy.exc import SQLAlchemyError

from chain import is_valid_address
from exceptions import (ValidationError, InsufficientBalance, NotFound,
                        InvalidState, GatewayFailure)
from ledger import create_withdrawal_request, process_withdrawal_approval
from models import (User, Transaction, TX_WITHDRAWAL, STATUS_PENDING,
                    STATUS_COMPLETED, STATUS_REJECTED)

logger = logging.getLogger(__name__)

QUANT = Decimal('0.00000001')
DEFAULT_FEE_RATE = Decimal('0.10')

WithdrawalReceipt = namedtuple('WithdrawalReceipt', 'transaction_id amount fee net_amount status')
ApprovalOutcome = namedtuple('ApprovalOutcome', 'status tx_hash message error')


def parse_amount(value):
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError('Invalid amount')
    if not amount.is_finite() or amount <= 0:
        raise ValidationError('Amount must be greater than zero')
    try:
        quantized = amount.quantize(QUANT)
    except InvalidOperation:
        raise ValidationError('Amount is too large')
    if quantized != amount:
        raise ValidationError('Amount supports at most 8 decimal places')
    return quantized


def withdrawal_fee(amount, fee_rate=DEFAULT_FEE_RATE):
    """Returns (fee, net_amount) for a gross withdrawal amount."""
    fee = (amount * fee_rate).quantize(QUANT)
    return fee, amount - fee


def submit_withdrawal(session, user_id, amount, destination_address, fee_rate=DEFAULT_FEE_RATE):
    amount = parse_amount(amount)
    if not is_valid_address(destination_address):
        raise ValidationError('Invalid wallet address')

    user = session.get(User, user_id)
    if user is None:
        raise NotFound('User profile not found')
    if amount > user.main_wallet_balance:
        raise InsufficientBalance()

    fee, net_amount = withdrawal_fee(amount, fee_rate)
    logger.info(f"Creating withdrawal request: user={user_id} amount={amount} "
                f"fee={fee} net={net_amount} to={destination_address}")

    transaction_id = create_withdrawal_request(
        session, user_id, amount, fee, net_amount, destination_address
    )
    return WithdrawalReceipt(transaction_id, amount, fee, net_amount, STATUS_PENDING)


def _load_pending(session, transaction_id):
    tx = session.query(Transaction).filter(
        Transaction.id == transaction_id,
        Transaction.transaction_type == TX_WITHDRAWAL
    ).with_for_update().first()
    if tx is None:
        raise NotFound('Withdrawal transaction not found')
    if tx.status != STATUS_PENDING:
        raise InvalidState(f"Withdrawal {transaction_id} is already {tx.status}")
    return tx


def approve_withdrawal(session, gateway, transaction_id, approve, destination_override=None):
    """
    Decide a pending withdrawal.

    On approval the net amount is sent through ``gateway.transfer``; any
    gateway error rejects the withdrawal and refunds the gross amount.
    """
    tx = _load_pending(session, transaction_id)

    if not approve:
        process_withdrawal_approval(session, transaction_id, approve=False)
        logger.info(f"Withdrawal {transaction_id} rejected and refunded")
        return ApprovalOutcome(STATUS_REJECTED, None, 'Withdrawal rejected and amount refunded', None)

    destination = destination_override or tx.destination_address
    net_amount = tx.net_amount
    try:
        if not destination:
            raise GatewayFailure('No destination address recorded')
        tx_hash = gateway.transfer(destination, net_amount)
    except Exception as e:
        logger.error(f"Error processing withdrawal {transaction_id}: {e}")
        process_withdrawal_approval(session, transaction_id, approve=False)
        return ApprovalOutcome(STATUS_REJECTED, None,
                               'Withdrawal processing failed; amount refunded', str(e))

    try:
        process_withdrawal_approval(session, transaction_id, approve=True, tx_hash=tx_hash)
    except SQLAlchemyError:
        # funds left the wallet; the row stays pending for manual reconciliation
        logger.critical(f"Withdrawal {transaction_id} sent on-chain as {tx_hash} "
                        f"but could not be marked completed")
        raise
    logger.info(f"Withdrawal {transaction_id} completed: {tx_hash}")
    return ApprovalOutcome(STATUS_COMPLETED, tx_hash, 'Withdrawal approved and processed', None)


def pending_withdrawals(session):
    return session.query(Transaction).filter_by(
        transaction_type=TX_WITHDRAWAL, status=STATUS_PENDING
    ).order_by(Transaction.created_at.desc()).all()


def withdrawal_history(session, user_id):
    return session.query(Transaction).filter_by(
        user_id=user_id, transaction_type=TX_WITHDRAWAL
    ).order_by(Transaction.created_at.desc()).all()
