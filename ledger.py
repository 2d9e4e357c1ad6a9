"""
Atomic ledger primitives.

Every balance change is an SQL-level ``balance + delta`` update issued in the
same database transaction as the Transaction row that explains it. Nothing in
here reads a balance, computes a new one in Python and writes it back.

The two withdrawal primitives commit (or roll back) themselves; the
increment helpers leave the commit to the caller so they can be grouped with
other writes.
"""

import logging
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from exceptions import InsufficientBalance, InvalidState, NotFound
from models import (User, InvestmentPlan, Transaction, TX_WITHDRAWAL,
                    STATUS_PENDING, STATUS_COMPLETED, STATUS_REJECTED)

logger = logging.getLogger(__name__)


def credit_balance(session, user_id, amount):
    """Add ``amount`` to the user's main wallet. Returns the matched row count."""
    return session.query(User).filter(User.id == user_id).update(
        {User.main_wallet_balance: User.main_wallet_balance + amount},
        synchronize_session=False
    )


def increment_plan_profit(session, plan_id, amount):
    return session.query(InvestmentPlan).filter(InvestmentPlan.id == plan_id).update(
        {InvestmentPlan.total_profit_earned: InvestmentPlan.total_profit_earned + amount},
        synchronize_session=False
    )


def create_withdrawal_request(session, user_id, amount, fee, net_amount, address):
    """
    Reserve ``amount`` from the user's balance and record a pending withdrawal.

    The debit only matches when the balance still covers the amount, so two
    concurrent requests can never overdraw the wallet together. Debit and
    insert are committed as one unit; on any failure neither is kept.
    """
    try:
        debited = session.query(User).filter(
            User.id == user_id,
            User.main_wallet_balance >= amount
        ).update(
            {User.main_wallet_balance: User.main_wallet_balance - amount},
            synchronize_session=False
        )
        if not debited:
            session.rollback()
            raise InsufficientBalance()

        tx = Transaction(
            user_id=user_id,
            transaction_type=TX_WITHDRAWAL,
            amount=amount,
            fee=fee,
            net_amount=net_amount,
            status=STATUS_PENDING,
            destination_address=address,
            description=f"Withdrawal of {net_amount} USDT to {address}"
        )
        session.add(tx)
        session.flush()
        transaction_id = tx.id
        session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error creating withdrawal request for user {user_id}: {e}")
        session.rollback()
        raise
    return transaction_id


def process_withdrawal_approval(session, transaction_id, approve, tx_hash=None):
    """
    Move a pending withdrawal to its terminal state.

    approve=True marks it completed and stamps the on-chain hash; the
    reservation stays debited. approve=False marks it rejected and credits
    the gross amount back. The transition is conditional on the row still
    being pending, so a withdrawal is never finalized twice.
    """
    row = session.query(
        Transaction.user_id, Transaction.amount, Transaction.transaction_type
    ).filter(Transaction.id == transaction_id).first()
    if row is None or row.transaction_type != TX_WITHDRAWAL:
        raise NotFound('Withdrawal transaction not found')

    pending = session.query(Transaction).filter(
        Transaction.id == transaction_id,
        Transaction.status == STATUS_PENDING
    )
    try:
        if approve:
            moved = pending.update({
                Transaction.status: STATUS_COMPLETED,
                Transaction.reference_id: tx_hash,
                Transaction.description: func.coalesce(Transaction.description, '') + f" - Completed: {tx_hash}",
            }, synchronize_session=False)
        else:
            moved = pending.update({Transaction.status: STATUS_REJECTED}, synchronize_session=False)

        if not moved:
            session.rollback()
            raise InvalidState(f"Withdrawal {transaction_id} is no longer pending")

        if not approve:
            credit_balance(session, row.user_id, row.amount)
        session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error finalizing withdrawal {transaction_id}: {e}")
        session.rollback()
        raise
