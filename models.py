"""
SQLAlchemy models.

Each class maps one table. All money columns are ``Numeric(20, 8)`` and are
read back as ``decimal.Decimal``; balances are only ever changed through the
atomic helpers in ``ledger.py``.
"""

from datetime import datetime
from decimal import Decimal
from flask_login import UserMixin
from extensions import db

MONEY = db.Numeric(20, 8)

PLAN_TYPES = ('A', 'B', 'C')

TX_PROFIT = 'profit'
TX_WITHDRAWAL = 'withdrawal'
TX_DEPOSIT = 'deposit'
TX_REFERRAL = 'referral'
TRANSACTION_TYPES = (TX_PROFIT, TX_WITHDRAWAL, TX_DEPOSIT, TX_REFERRAL)

STATUS_PENDING = 'pending'
STATUS_COMPLETED = 'completed'
STATUS_REJECTED = 'rejected'

# ==========================================
# 1. Roles & Permissions
# ==========================================
class Role(db.Model):
    """Admin, Investor, Finance... with a comma separated permission list."""
    __tablename__ = 'roles'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    description = db.Column(db.String(200))
    permissions = db.Column(db.Text)
    users = db.relationship('User', backref='role', lazy=True)

    def grants(self, permission_name):
        if self.name == 'Admin':
            return True
        perms = self.permissions.split(',') if self.permissions else []
        return permission_name in perms

# ==========================================
# 2. Users (profiles)
# ==========================================
class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(150), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(150))
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'))
    main_wallet_balance = db.Column(MONEY, nullable=False, default=Decimal('0'))
    fund_wallet_balance = db.Column(MONEY, nullable=False, default=Decimal('0'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    plans = db.relationship('InvestmentPlan', backref='user', lazy=True)
    transactions = db.relationship('Transaction', backref='user', lazy=True)
    logs = db.relationship('AuditLog', backref='user', lazy=True)

    def has_permission(self, permission_name):
        return bool(self.role and self.role.grants(permission_name))

# ==========================================
# 3. Investment Plans
# ==========================================
class InvestmentPlan(db.Model):
    """A user's capital commitment earning periodic profit."""
    __tablename__ = 'investment_plans'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    plan_type = db.Column(db.String(1), nullable=False)
    investment_amount = db.Column(MONEY, nullable=False)
    daily_percentage = db.Column(db.Numeric(10, 4), nullable=False)
    total_profit_earned = db.Column(MONEY, nullable=False, default=Decimal('0'))
    is_active = db.Column(db.Boolean, default=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("plan_type IN ('A', 'B', 'C')", name='ck_plan_type'),
        db.CheckConstraint('investment_amount >= 0', name='ck_plan_amount'),
        db.CheckConstraint('daily_percentage > 0', name='ck_plan_rate'),
    )

# ==========================================
# 4. Profit Distributions
# ==========================================
class ProfitDistribution(db.Model):
    """One accrual event; the (plan, period) pair is the idempotency key."""
    __tablename__ = 'profit_distributions'
    id = db.Column(db.Integer, primary_key=True)
    plan_id = db.Column(db.Integer, db.ForeignKey('investment_plans.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    profit_amount = db.Column(MONEY, nullable=False)
    distribution_date = db.Column(db.String(16), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    plan = db.relationship('InvestmentPlan', backref='distributions')

    __table_args__ = (
        db.UniqueConstraint('plan_id', 'distribution_date', name='uq_distribution_plan_period'),
    )

# ==========================================
# 5. Transactions (Ledger)
# ==========================================
class Transaction(db.Model):
    """Append-only audit entry for every balance change."""
    __tablename__ = 'transactions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    plan_id = db.Column(db.Integer, db.ForeignKey('investment_plans.id'))
    transaction_type = db.Column(db.String(20), nullable=False)
    amount = db.Column(MONEY, nullable=False)
    fee = db.Column(MONEY, nullable=False, default=Decimal('0'))
    net_amount = db.Column(MONEY, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    destination_address = db.Column(db.String(64))
    reference_id = db.Column(db.String(100))
    description = db.Column(db.String(300))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'type': self.transaction_type,
            'amount': self.amount,
            'fee': self.fee,
            'netAmount': self.net_amount,
            'status': self.status,
            'walletAddress': self.destination_address,
            'referenceId': self.reference_id,
            'description': self.description,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

# ==========================================
# 6. Audit Logs
# ==========================================
class AuditLog(db.Model):
    """Admin activity trail."""
    __tablename__ = 'audit_logs'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    action = db.Column(db.String(100), nullable=False)
    details = db.Column(db.String(500))
    ip_address = db.Column(db.String(50))
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)
