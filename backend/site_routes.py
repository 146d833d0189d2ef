from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

import negotiation
from schemas import NegotiationIn
from settings_store import get_site_settings
from uploads import save_upload

site_bp = Blueprint('site', __name__, url_prefix='/api')


@site_bp.route('/settings', methods=['GET'])
def public_settings():
    # SMTP details never leave the admin API
    return jsonify(get_site_settings().public_dict()), 200


@site_bp.route('/upload', methods=['POST'])
@jwt_required()
def upload_image():
    stored = save_upload(request.files.get('file'), kind='images')
    return jsonify({
        'success': True,
        'filePath': stored['filePath'],
        'originalName': stored['originalName'],
    }), 201


@site_bp.route('/negotiate', methods=['POST'])
def negotiate_price():
    data = NegotiationIn.model_validate(request.get_json(silent=True) or {})
    answer = negotiation.negotiate(data)
    return jsonify(answer.model_dump(by_alias=True)), 200
