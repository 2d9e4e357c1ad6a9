from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func
from sqlalchemy.exc import OperationalError

import tasks
from exceptions import ValidationError
from models import User, InvestmentPlan, ProfitDistribution, Transaction
from tasks import distribute_profits, period_key_for, period_profit, run_distribution_cycle


def test_period_profit_hourly_accrual():
    assert period_profit(Decimal('1000'), Decimal('2'), 24) == Decimal('0.83333333')
    assert period_profit(Decimal('1000'), Decimal('2'), 1) == Decimal('20.00000000')


def test_period_key_grains():
    now = datetime(2024, 5, 1, 13, 45)
    assert period_key_for(now, 'day') == '2024-05-01'
    assert period_key_for(now, 'hour') == '2024-05-01T13'
    with pytest.raises(ValueError):
        period_key_for(now, 'week')


def test_cycle_credits_balance_and_records(session, make_user, make_plan):
    user = make_user('0')
    plan = make_plan(user, amount='1000', rate='2')

    result = distribute_profits(session, '2024-05-01', periods_per_day=24)

    assert result.records_created == 1
    assert result.users_updated == 1
    record = ProfitDistribution.query.filter_by(plan_id=plan.id).one()
    assert record.profit_amount == Decimal('0.83333333')
    assert record.distribution_date == '2024-05-01'
    assert session.get(User, user.id).main_wallet_balance == Decimal('0.83333333')
    assert session.get(InvestmentPlan, plan.id).total_profit_earned == Decimal('0.83333333')

    tx = Transaction.query.filter_by(user_id=user.id, transaction_type='profit').one()
    assert tx.status == 'completed'
    assert tx.amount == tx.net_amount == Decimal('0.83333333')
    assert tx.plan_id == plan.id


def test_rerun_same_period_is_noop(session, make_user, make_plan):
    user = make_user('0')
    make_plan(user, amount='1000', rate='2')

    distribute_profits(session, '2024-05-01')
    second = distribute_profits(session, '2024-05-01')

    assert second.records_created == 0
    assert second.skipped == 1
    assert ProfitDistribution.query.count() == 1
    assert session.get(User, user.id).main_wallet_balance == Decimal('0.83333333')


def test_new_period_accrues_again(session, make_user, make_plan):
    user = make_user('0')
    make_plan(user, amount='1000', rate='2')

    distribute_profits(session, '2024-05-01T10')
    distribute_profits(session, '2024-05-01T11')

    assert ProfitDistribution.query.count() == 2
    assert session.get(User, user.id).main_wallet_balance == Decimal('1.66666666')


def test_inactive_plans_never_accrue(session, make_user, make_plan):
    user = make_user('5')
    make_plan(user, active=False)

    result = distribute_profits(session, '2024-05-01')

    assert result.records_created == 0
    assert ProfitDistribution.query.count() == 0
    assert session.get(User, user.id).main_wallet_balance == Decimal('5')


def test_balance_increments_equal_record_amounts(session, make_user, make_plan):
    alice = make_user('10')
    bob = make_user('0')
    make_plan(alice, amount='1000', rate='2', plan_type='A')
    make_plan(alice, amount='250', rate='1.5', plan_type='B')
    make_plan(bob, amount='5000', rate='3', plan_type='C')

    result = distribute_profits(session, '2024-05-01')

    assert result.users_updated == 2
    assert result.records_created == 3
    recorded = session.query(func.sum(ProfitDistribution.profit_amount)).scalar()
    credited = (session.get(User, alice.id).main_wallet_balance - Decimal('10')
                + session.get(User, bob.id).main_wallet_balance)
    assert Decimal(recorded).quantize(Decimal('0.00000001')) == credited
    assert Transaction.query.filter_by(transaction_type='profit').count() == 3


def test_store_failure_is_isolated_per_plan(session, make_user, make_plan, monkeypatch):
    alice = make_user('0')
    bob = make_user('0')
    failing_id = make_plan(alice).id
    make_plan(bob)

    real_increment = tasks.increment_plan_profit

    def flaky_increment(sess, plan_id, amount):
        if plan_id == failing_id:
            raise OperationalError('UPDATE investment_plans', {}, Exception('database is locked'))
        return real_increment(sess, plan_id, amount)

    monkeypatch.setattr(tasks, 'increment_plan_profit', flaky_increment)

    result = distribute_profits(session, '2024-05-01')

    assert result.failed == 1
    assert result.records_created == 1
    # the failed plan left nothing behind
    assert ProfitDistribution.query.filter_by(plan_id=failing_id).count() == 0
    assert session.get(User, alice.id).main_wallet_balance == Decimal('0')
    assert session.get(User, bob.id).main_wallet_balance == Decimal('0.83333333')

    # a later run for the same period picks the failed plan up exactly once
    monkeypatch.setattr(tasks, 'increment_plan_profit', real_increment)
    retry = distribute_profits(session, '2024-05-01')
    assert retry.records_created == 1
    assert session.get(User, alice.id).main_wallet_balance == Decimal('0.83333333')
    assert session.get(User, bob.id).main_wallet_balance == Decimal('0.83333333')


def test_cycle_uses_configured_grain(app, session, make_user, make_plan):
    user = make_user('0')
    make_plan(user)
    app.config['PROFIT_PERIOD_GRAIN'] = 'day'
    app.config['PROFIT_PERIODS_PER_DAY'] = 1

    now = datetime(2024, 5, 1, 9, 0)
    result = run_distribution_cycle(app.config, session, now=now)
    again = run_distribution_cycle(app.config, session, now=now.replace(hour=17))

    assert result.period_key == '2024-05-01'
    assert again.records_created == 0
    assert session.get(User, user.id).main_wallet_balance == Decimal('20')


def test_no_active_plans(session):
    result = distribute_profits(session, '2024-05-01')
    assert result.users_updated == 0
    assert result.records_created == 0


def test_cli_command_runs_cycle(app, session, make_user, make_plan):
    user_id = make_user('0').id
    make_plan(session.get(User, user_id))

    runner = app.test_cli_runner()
    result = runner.invoke(args=['distribute-profits', '--period-key', '2024-05-01T00'])

    assert result.exit_code == 0
    assert 'records created: 1' in result.output
    session.expire_all()
    assert session.get(User, user_id).main_wallet_balance == Decimal('0.83333333')


def test_cycle_rejects_period_key_outside_grain(app, session, make_user, make_plan):
    make_plan(make_user('0'))

    for key in ('x1', '2024-05-01', '2024-05-01T24', '2024-05-01T7'):
        with pytest.raises(ValidationError):
            run_distribution_cycle(app.config, session, period_key=key)

    assert ProfitDistribution.query.count() == 0
    result = run_distribution_cycle(app.config, session, period_key='2024-05-01T07')
    assert result.records_created == 1


def test_cli_rejects_bad_period_key(app, session, make_user, make_plan):
    make_plan(make_user('0'))

    result = app.test_cli_runner().invoke(args=['distribute-profits', '--period-key', 'x1'])

    assert result.exit_code != 0
    assert ProfitDistribution.query.count() == 0
