import logging
import os

import redis
from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_mail import Mail
from pydantic import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException

# Custom imports for database and errors
from database import db
from errors import ApiError, field_errors

# Route blueprints, one per API area
from admin_routes import admin_bp
from auth_routes import auth_bp
from booking_routes import bookings_bp
from car_routes import cars_bp
from checkout_routes import checkout_bp
from profile_routes import profile_bp
from site_routes import site_bp

app = Flask(__name__)

# --- Application Configuration ---
# APP_CONFIG names the settings class, e.g. config.TestingConfig
app.config.from_object(os.getenv('APP_CONFIG', 'config.Config'))

logging.basicConfig(
    level=getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize plugins
mail = Mail(app)
jwt = JWTManager(app)
db.init_app(app)
CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})

# Redis cache for the site settings; disabled when REDIS_URL is empty.
# The client connects lazily, so a missing server only shows up as
# warnings from settings_store.
if app.config['REDIS_URL']:
    app.extensions['redis_cache'] = redis.Redis.from_url(app.config['REDIS_URL'])


# ==========================================
# TOKEN ERRORS
# ==========================================

@jwt.unauthorized_loader
def missing_token(reason):
    return jsonify({'message': 'Authentication required'}), 401


@jwt.expired_token_loader
def expired_token(jwt_header, jwt_payload):
    return jsonify({'message': 'Session expired. Please log in again.'}), 401


@jwt.invalid_token_loader
def invalid_token(reason):
    return jsonify({'message': f'Invalid token: {reason}'}), 401


# ==========================================
# ERROR RENDERING
# ==========================================

@app.errorhandler(ApiError)
def handle_api_error(e):
    if e.status_code >= 500:
        logger.error("%s: %s", type(e).__name__, e.message)
    return jsonify(e.to_dict()), e.status_code


@app.errorhandler(SchemaValidationError)
def handle_schema_error(e):
    return jsonify({'message': 'Invalid request data', 'errors': field_errors(e)}), 400


@app.errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({'message': e.description}), e.code


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    db.session.rollback()
    logger.exception("Unhandled error while serving request")
    return jsonify({'message': 'Internal server error'}), 500


# ==========================================
# ROUTES
# ==========================================

for blueprint in (auth_bp, cars_bp, bookings_bp, checkout_bp, profile_bp, admin_bp, site_bp):
    app.register_blueprint(blueprint)


# Health Check Route
@app.route('/')
def health_check():
    return "Travel Yatra API is running."


if __name__ == '__main__':
    with app.app_context():
        db.create_all()
    app.run(debug=True)
