from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from models import InvestmentPlan
from utils import get_plan_totals

user_bp = Blueprint('user', __name__, url_prefix='/api')

@user_bp.route('/dashboard')
@login_required
def dashboard():
    plans = InvestmentPlan.query.filter_by(user_id=current_user.id, is_active=True)\
                                .order_by(InvestmentPlan.created_at.desc()).all()
    total_invested, total_profit = get_plan_totals(current_user.id)

    return jsonify({
        'profile': {
            'id': current_user.id,
            'fullName': current_user.full_name,
            'mainWalletBalance': current_user.main_wallet_balance,
            'fundWalletBalance': current_user.fund_wallet_balance,
        },
        'plans': [{
            'id': plan.id,
            'planType': plan.plan_type,
            'investmentAmount': plan.investment_amount,
            'dailyPercentage': plan.daily_percentage,
            'totalProfitEarned': plan.total_profit_earned,
            'createdAt': plan.created_at.isoformat() if plan.created_at else None
        } for plan in plans],
        'totalInvestment': total_invested,
        'totalProfits': total_profit
    })
