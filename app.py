import os
import logging
from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate
from config import Config
from models import db
from storage import create_store, get_store
from Analysis import analysis_bp
from Habit import habits_bp
from Sessions import SESSION_HEADER, sessions_bp

# Configure logging
logging.basicConfig(level=Config.LOG_LEVEL)
logger = logging.getLogger(__name__)

migrate = Migrate()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    CORS(app, resources={r"/api/*": {
        "origins": app.config["FRONTEND_URL"],
        "methods": ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        "allow_headers": ["Content-Type", SESSION_HEADER]
    }})
    db.init_app(app)
    migrate.init_app(app, db)

    # Chosen once here; handlers never switch stores mid-flight
    app.extensions["habit_store"] = create_store(app)

    app.register_blueprint(sessions_bp)
    app.register_blueprint(analysis_bp)
    app.register_blueprint(habits_bp)

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "storage": get_store().name}), 200

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", 5000)))
