"""
Background tasks: periodic profit distribution.

Profit is accrued per plan and per period key. Each plan is applied in its
own database transaction (distribution record, wallet credit, profit
transaction, plan counter), so a record never exists without its balance
effect. The unique (plan_id, distribution_date) constraint makes reruns and
overlapping triggers within one period harmless.
"""

import logging
from collections import namedtuple
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from extensions import db
from exceptions import NotFound, ValidationError
from ledger import credit_balance, increment_plan_profit

logger = logging.getLogger(__name__)

QUANT = Decimal('0.00000001')

GRAIN_FORMATS = {
    'day': '%Y-%m-%d',
    'hour': '%Y-%m-%dT%H',
}
# periods per day each grain implies
GRAIN_PERIODS = {'day': 1, 'hour': 24}

DistributionResult = namedtuple('DistributionResult', 'period_key users_updated records_created skipped failed')


def period_key_for(now, grain='hour'):
    """Idempotency key for the period containing ``now``."""
    try:
        return now.strftime(GRAIN_FORMATS[grain])
    except KeyError:
        raise ValueError(f"Unknown profit period grain: {grain!r}")


def check_period_key(period_key, grain='hour'):
    """Reject keys that are not the canonical form of a period in ``grain``."""
    fmt = GRAIN_FORMATS[grain]
    try:
        parsed = datetime.strptime(period_key, fmt)
    except (TypeError, ValueError):
        parsed = None
    if parsed is None or parsed.strftime(fmt) != period_key:
        raise ValidationError(f"Period key {period_key!r} does not match the '{grain}' grain")
    return period_key


def period_profit(investment_amount, daily_percentage, periods_per_day):
    rate = Decimal(daily_percentage) / Decimal('100')
    profit = Decimal(investment_amount) * rate / Decimal(periods_per_day)
    return profit.quantize(QUANT, rounding=ROUND_HALF_UP)


def distribute_profits(session, period_key, now=None, periods_per_day=24):
    """
    Run one distribution cycle for ``period_key``.

    Per-plan store errors are logged and skipped; only a failure to load
    the active plans propagates.
    """
    from models import InvestmentPlan, ProfitDistribution, Transaction, TX_PROFIT, STATUS_COMPLETED

    now = now or datetime.utcnow()
    logger.info(f"--- Starting Profit Distribution {period_key}: {now} ---")

    plans = session.query(
        InvestmentPlan.id, InvestmentPlan.user_id, InvestmentPlan.plan_type,
        InvestmentPlan.investment_amount, InvestmentPlan.daily_percentage
    ).filter(InvestmentPlan.is_active.is_(True)).order_by(InvestmentPlan.id).all()

    if not plans:
        logger.info("No active investment plans found")
        return DistributionResult(period_key, 0, 0, 0, 0)

    user_totals = {}
    created = skipped = failed = 0

    for plan in plans:
        try:
            already = session.query(ProfitDistribution.id).filter_by(
                plan_id=plan.id, distribution_date=period_key
            ).first()
            if already:
                logger.info(f"Profit already distributed for plan {plan.id} in {period_key}")
                skipped += 1
                continue

            amount = period_profit(plan.investment_amount, plan.daily_percentage, periods_per_day)
            if amount <= 0:
                skipped += 1
                continue

            session.add(ProfitDistribution(
                plan_id=plan.id,
                user_id=plan.user_id,
                profit_amount=amount,
                distribution_date=period_key,
                created_at=now
            ))
            # the unique constraint fires here if a concurrent run won the plan
            session.flush()

            if not credit_balance(session, plan.user_id, amount):
                raise NotFound(f"profile {plan.user_id} not found")

            session.add(Transaction(
                user_id=plan.user_id,
                plan_id=plan.id,
                transaction_type=TX_PROFIT,
                amount=amount,
                fee=Decimal('0'),
                net_amount=amount,
                status=STATUS_COMPLETED,
                description=f"Profit distribution {period_key} for plan {plan.plan_type} #{plan.id}",
                created_at=now
            ))
            increment_plan_profit(session, plan.id, amount)
            session.commit()

            created += 1
            user_totals[plan.user_id] = user_totals.get(plan.user_id, Decimal('0')) + amount
            logger.info(f"Distributed profit for plan {plan.id}: ${amount}")
        except IntegrityError:
            session.rollback()
            logger.info(f"Plan {plan.id} was distributed concurrently for {period_key}; skipping")
            skipped += 1
        except (SQLAlchemyError, NotFound) as e:
            session.rollback()
            logger.error(f"Error processing plan {plan.id} (user {plan.user_id}): {e}")
            failed += 1

    for user_id, total in user_totals.items():
        logger.info(f"Updated wallet for user {user_id}: +${total}")

    logger.info(f"--- Profit Distribution Completed. Users: {len(user_totals)}, "
                f"records: {created}, skipped: {skipped}, failed: {failed} ---")
    return DistributionResult(period_key, len(user_totals), created, skipped, failed)


def run_distribution_cycle(config, session, now=None, period_key=None):
    """Derive the period key from the configured grain and run one cycle."""
    grain = config['PROFIT_PERIOD_GRAIN']
    periods_per_day = config['PROFIT_PERIODS_PER_DAY']
    if GRAIN_PERIODS.get(grain) != periods_per_day:
        logger.warning(f"Profit grain '{grain}' with {periods_per_day} periods per day: "
                       f"accrual per day will not equal the daily rate")

    now = now or datetime.utcnow()
    if period_key:
        check_period_key(period_key, grain)
    else:
        period_key = period_key_for(now, grain)
    return distribute_profits(session, period_key, now=now, periods_per_day=periods_per_day)


def run_profit_distribution(app, now=None, period_key=None):
    """Profit distribution job (run by the scheduler and the CLI)."""
    with app.app_context():
        return run_distribution_cycle(app.config, db.session, now=now, period_key=period_key)
