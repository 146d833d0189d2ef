from flask import Blueprint, jsonify, request

import auth
from schemas import ForgotPasswordIn, LoginIn, RegisterIn, ResetPasswordIn

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


# ==========================================
# AUTHENTICATION ROUTES
# ==========================================

@auth_bp.route('/register', methods=['POST'])
def process_registration():
    data = RegisterIn.model_validate(request.get_json(silent=True) or {})
    user = auth.create_user(data.full_name, data.email, data.password, phone_number=data.phone_number)
    return jsonify({'message': 'User registered successfully', 'userId': str(user.id)}), 201


@auth_bp.route('/login', methods=['POST'])
def perform_login():
    data = LoginIn.model_validate(request.get_json(silent=True) or {})
    user = auth.authenticate(data.email, data.password)
    token = auth.issue_token(user)
    return jsonify({
        'message': 'Login successful',
        'token': token,
        'user': user.to_dict(with_documents=False),
    }), 200


@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    data = ForgotPasswordIn.model_validate(request.get_json(silent=True) or {})
    message = auth.request_password_reset(data.email)
    return jsonify({'message': message}), 200


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    data = ResetPasswordIn.model_validate(request.get_json(silent=True) or {})
    auth.reset_password(data.token, data.password)
    return jsonify({'message': 'Password has been reset successfully.'}), 200
