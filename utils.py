import threading
from decimal import Decimal
from flask import current_app, request
from flask_login import current_user
from flask_mail import Message
from sqlalchemy.exc import SQLAlchemyError
from extensions import db, mail
from models import AuditLog, InvestmentPlan

# --- Audit ---

def log_admin_activity(action, details):
    if not current_user.is_authenticated:
        return
    try:
        log = AuditLog(
            user_id=current_user.id,
            action=action,
            details=details,
            ip_address=request.remote_addr
        )
        db.session.add(log)
        db.session.commit()
    except SQLAlchemyError as e:
        current_app.logger.error(f"Error logging activity: {e}")
        db.session.rollback()

# --- Financial Utilities ---

def get_plan_totals(user_id):
    """Total invested and total profit earned across a user's active plans."""
    invested, earned = db.session.query(
        db.func.sum(InvestmentPlan.investment_amount),
        db.func.sum(InvestmentPlan.total_profit_earned)
    ).filter(
        InvestmentPlan.user_id == user_id,
        InvestmentPlan.is_active.is_(True)
    ).one()
    return invested or Decimal('0'), earned or Decimal('0')

# --- Email (async) ---

def send_async_email(app, msg):
    with app.app_context():
        try:
            mail.send(msg)
            app.logger.info(f"Email sent to {msg.recipients}")
        except Exception as e:
            app.logger.error(f"Failed to send email: {e}")

def send_system_email(subject, recipient, body):
    """Queue an email on a background thread. No-op without MAIL_SERVER."""
    app = current_app._get_current_object()
    if not app.config.get('MAIL_SERVER'):
        app.logger.debug(f"Mail disabled; not sending '{subject}' to {recipient}")
        return None

    msg = Message(subject, recipients=[recipient])
    msg.body = body
    msg.html = f"""
    <div style="font-family: Arial, sans-serif; padding: 20px; border: 1px solid #ddd; border-radius: 5px;">
        <h2 style="color: #0d6efd;">Jarvis AI Notification</h2>
        <p style="font-size: 16px;">{body}</p>
        <hr>
        <small style="color: #666;">This is an automated message, please do not reply.</small>
    </div>
    """
    thr = threading.Thread(target=send_async_email, args=(app, msg))
    thr.start()
    return thr

def notify_withdrawal_outcome(tx, outcome):
    user = tx.user
    if not user or not user.email:
        return None
    if outcome.tx_hash:
        body = f"Your withdrawal of {tx.net_amount} USDT has been sent. Transaction hash: {outcome.tx_hash}"
    else:
        body = f"Your withdrawal #{tx.id} was not processed. {tx.amount} USDT has been returned to your main wallet."
    return send_system_email('Withdrawal update', user.email, body)
