from flask_sqlalchemy import SQLAlchemy

# Shared SQLAlchemy handle; bound to the Flask app in app.py
db = SQLAlchemy()
