from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf
from werkzeug.security import check_password_hash
from models import User

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

@auth_bp.route('/csrf-token')
def csrf_token():
    return jsonify({'csrfToken': generate_csrf()})

@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    password = data.get('password')
    user = User.query.filter_by(email=email).first() if email else None

    if user and password and check_password_hash(user.password, password):
        login_user(user)
        return jsonify({'success': True, 'userId': user.id})
    return jsonify({'error': 'Invalid email or password.'}), 401

@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    user_id = current_user.id
    logout_user()
    return jsonify({'success': True, 'userId': user_id})
