import os
import datetime

# All settings come from the environment, with development defaults.
# app.py loads the class named by APP_CONFIG (default: config.Config).

base_dir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL', 'sqlite:///' + os.path.join(base_dir, 'rental.db')
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv('JWT_SECRET', 'super-secret-key-change-in-prod')
    # Overridden per login from the site settings' session timeout
    JWT_ACCESS_TOKEN_EXPIRES = datetime.timedelta(minutes=60)

    # Email defaults; the site settings may override host/port/user/password/sender
    MAIL_SERVER = os.getenv('SMTP_HOST', 'localhost')
    MAIL_PORT = int(os.getenv('SMTP_PORT', 1025))
    MAIL_USE_TLS = os.getenv('SMTP_USE_TLS', 'false').lower() == 'true'
    MAIL_USE_SSL = MAIL_PORT == 465
    MAIL_USERNAME = os.getenv('SMTP_USER')
    MAIL_PASSWORD = os.getenv('SMTP_PASS')
    MAIL_DEFAULT_SENDER = os.getenv('EMAIL_FROM', 'no-reply@travelyatra.local')

    CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
    CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
    CELERY_ALWAYS_EAGER = False

    # Caching is disabled when REDIS_URL is empty
    REDIS_URL = os.getenv('REDIS_URL', '')
    SETTINGS_CACHE_SECONDS = 300

    APP_URL = os.getenv('NEXT_PUBLIC_APP_URL', 'http://localhost:9002')
    PASSWORD_RESET_URL_BASE = os.getenv('PASSWORD_RESET_URL_BASE', APP_URL + '/reset-password')

    RAZORPAY_KEY_ID = os.getenv('RAZORPAY_KEY_ID')
    RAZORPAY_KEY_SECRET = os.getenv('RAZORPAY_KEY_SECRET')
    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
    STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET')
    PAYMENT_HOLD_MINUTES = int(os.getenv('PAYMENT_HOLD_MINUTES', 30))

    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY')
    GEMINI_MODEL = os.getenv('GEMINI_MODEL', 'gemini-1.5-flash')
    GEMINI_TIMEOUT_SECONDS = 20

    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', os.path.join(base_dir, 'public', 'assets'))
    MAX_UPLOAD_BYTES = 5 * 1024 * 1024
    # Whole request, leaves room for the multipart envelope
    MAX_CONTENT_LENGTH = 6 * 1024 * 1024

    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    JWT_SECRET_KEY = 'test-secret-key-for-the-test-suite-only'
    MAIL_SUPPRESS_SEND = True
    CELERY_ALWAYS_EAGER = True
    CELERY_EAGER_PROPAGATES_EXCEPTIONS = True
    REDIS_URL = ''
    RAZORPAY_KEY_ID = 'rzp_test_key'
    RAZORPAY_KEY_SECRET = 'rzp_test_secret'
    STRIPE_SECRET_KEY = 'sk_test_dummy'
    STRIPE_WEBHOOK_SECRET = 'whsec_test'
    GEMINI_API_KEY = 'test-gemini-key'
