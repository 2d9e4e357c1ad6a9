from decimal import Decimal

import pytest
from flask import g
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db as _db
from models import Role, User, InvestmentPlan

ADDRESS = '0x' + 'ab' * 20
OTHER_ADDRESS = '0x' + 'cd' * 20


class FakeGateway:
    """Stands in for BSCGateway; records every transfer request."""

    def __init__(self, tx_hash='0xabc', error=None):
        self.tx_hash = tx_hash
        self.error = error
        self.calls = []

    def transfer(self, address, amount):
        self.calls.append((address, amount))
        if self.error is not None:
            raise self.error
        return self.tx_hash


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def session(app):
    return _db.session


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gateway(app):
    fake = FakeGateway()
    app.extensions['transfer_gateway'] = fake
    return fake


@pytest.fixture
def make_user(session):
    counter = {'n': 0}

    def _make(balance='0', role=None, password='secret'):
        counter['n'] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            password=generate_password_hash(password),
            full_name=f"User {counter['n']}",
            main_wallet_balance=Decimal(balance),
            role=role
        )
        session.add(user)
        session.commit()
        return user
    return _make


@pytest.fixture
def make_plan(session):
    def _make(user, amount='1000', rate='2', plan_type='A', active=True):
        plan = InvestmentPlan(
            user_id=user.id,
            plan_type=plan_type,
            investment_amount=Decimal(amount),
            daily_percentage=Decimal(rate),
            is_active=active
        )
        session.add(plan)
        session.commit()
        return plan
    return _make


@pytest.fixture
def finance_role(session):
    role = Role(name='Finance', permissions='manage_withdrawals,manage_profits,view_logs')
    session.add(role)
    session.commit()
    return role


@pytest.fixture
def login(client):
    def _login(user):
        # requests share the fixture's app context, where flask-login caches the user
        g.pop('_login_user', None)
        with client.session_transaction() as sess:
            sess['_user_id'] = str(user.id)
            sess['_fresh'] = True
    return _login
