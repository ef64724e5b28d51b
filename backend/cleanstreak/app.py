from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from flask import Flask, jsonify, request

from flask_cors import CORS
from flask_jwt_extended import JWTManager, create_access_token, jwt_required, get_jwt_identity
from werkzeug.exceptions import HTTPException

from .models.db import init_db, SessionLocal
from .services import account_service, daily_log_service, ledger_service, motivation_service, prize_service
from .services.errors import InsufficientPoints, ServiceError
from .utils import parse_bool, parse_date


def create_app(overrides: Optional[dict] = None) -> Flask:
    app = Flask(__name__)
    from .config import Config
    app.config.from_object(Config)
    app.config["JWT_SECRET_KEY"] = Config.JWT_SECRET_KEY
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(days=Config.JWT_EXPIRES_DAYS)
    if overrides:
        app.config.update(overrides)

    # INFO to the console
    logging.basicConfig(
        level=getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(message)s',
    )

    jwt = JWTManager(app)

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        logging.error(f"Invalid Token: {error}")
        return jsonify({"error": "Invalid token", "details": error}), 422

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        logging.error(f"Missing Token: {error}")
        return jsonify({"error": "Missing token", "details": error}), 401

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        logging.error(f"Expired Token for user {jwt_payload.get('sub')}")
        return jsonify({"error": "Token has expired", "token_expired": True}), 401

    CORS(app,
         resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
         methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
         allow_headers=["Content-Type", "Authorization"])

    register_routes(app)
    init_db()
    seed_default_data()

    @app.errorhandler(ServiceError)
    def handle_service_error(exc):
        payload = {"error": str(exc), "kind": exc.kind}
        if isinstance(exc, InsufficientPoints):
            payload.update(balance=exc.balance, costPoints=exc.cost_points)
        if exc.status_code >= 500:
            logging.error("Service failure: %s", exc)
        return jsonify(payload), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        logging.exception("Unhandled error: %s", e)
        return jsonify({"error": "Internal server error"}), 500

    return app


def _current_user_id() -> int:
    return int(get_jwt_identity())


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _issue_token(user: dict) -> str:
    return create_access_token(
        identity=str(user["id"]),
        additional_claims={"is_admin": user["isAdmin"], "username": user["username"]},
    )


def register_routes(app: Flask) -> None:
    @app.route("/health", methods=["GET"])
    def health() -> tuple:
        return jsonify({"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}), 200

    # --- Setup & auth ---
    @app.route("/api/setup/status", methods=["GET"])
    def setup_status():
        return jsonify(account_service.setup_status()), 200

    @app.route("/api/setup", methods=["POST"])
    def setup():
        user = account_service.setup_first_user(_json_body())
        return jsonify({"token": _issue_token(user), "user": user}), 201

    @app.route("/api/auth/signup", methods=["POST"])
    def signup():
        user = account_service.signup(_json_body())
        return jsonify({"token": _issue_token(user), "user": user}), 201

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        data = _json_body()
        user = account_service.login(data.get("username"), data.get("pin"))
        return jsonify({"token": _issue_token(user), "user": user}), 200

    @app.route("/api/me", methods=["GET"])
    @jwt_required()
    def me():
        return jsonify({"user": account_service.get_profile(_current_user_id())}), 200

    @app.route("/api/me", methods=["PUT"])
    @jwt_required()
    def update_me():
        user = account_service.update_profile(_current_user_id(), _json_body())
        return jsonify({"user": user}), 200

    # --- Daily logs & streak ---
    @app.route("/api/logs/daily", methods=["POST"])
    @jwt_required()
    def submit_daily_log():
        data = _json_body()
        result = daily_log_service.submit_daily_log(
            _current_user_id(),
            data.get("used"),
            context=data.get("context"),
            paid=data.get("paid"),
            amount_cents=data.get("amountCents"),
            on_date=data.get("date"),
            allow_correction=parse_bool(data.get("allowCorrection"), "allowCorrection", default=False),
        )
        return jsonify(result), 200

    @app.route("/api/logs", methods=["GET"])
    @jwt_required()
    def list_logs():
        return jsonify({"logs": daily_log_service.list_daily_logs(_current_user_id())}), 200

    @app.route("/api/streak", methods=["GET"])
    @jwt_required()
    def streak():
        return jsonify(daily_log_service.get_streak(_current_user_id())), 200

    # --- Bank & savings ---
    @app.route("/api/bank/summary", methods=["GET"])
    @jwt_required()
    def bank_summary():
        return jsonify(ledger_service.get_bank_summary(_current_user_id())), 200

    @app.route("/api/savings", methods=["GET"])
    @jwt_required()
    def savings():
        return jsonify(ledger_service.get_savings(_current_user_id())), 200

    # --- Prizes ---
    @app.route("/api/prizes", methods=["GET"])
    @jwt_required()
    def list_prizes():
        return jsonify({"prizes": prize_service.list_prizes(_current_user_id())}), 200

    @app.route("/api/prizes", methods=["POST"])
    @jwt_required()
    def create_prize():
        prize = prize_service.create_prize(_current_user_id(), _json_body())
        return jsonify({"prize": prize}), 201

    @app.route("/api/prizes/<int:prize_id>", methods=["PUT"])
    @jwt_required()
    def update_prize(prize_id: int):
        prize = prize_service.update_prize(_current_user_id(), prize_id, _json_body())
        return jsonify({"prize": prize}), 200

    @app.route("/api/prizes/<int:prize_id>", methods=["DELETE"])
    @jwt_required()
    def delete_prize(prize_id: int):
        return jsonify(prize_service.delete_prize(_current_user_id(), prize_id)), 200

    @app.route("/api/prizes/<int:prize_id>/purchase", methods=["POST"])
    @jwt_required()
    def purchase_prize(prize_id: int):
        return jsonify(prize_service.purchase_prize(_current_user_id(), prize_id)), 200

    @app.route("/api/prizes/<int:prize_id>/restock", methods=["POST"])
    @jwt_required()
    def restock_prize(prize_id: int):
        return jsonify({"prize": prize_service.restock_prize(_current_user_id(), prize_id)}), 200

    # --- Motivation ---
    @app.route("/api/motivation/quotes", methods=["GET"])
    def motivation_quotes():
        return jsonify({"quotes": motivation_service.daily_quotes()}), 200

    @app.route("/api/motivation/random", methods=["GET"])
    def motivation_random():
        return jsonify({"quote": motivation_service.random_quote()}), 200

    @app.route("/api/motivation/checklist", methods=["GET"])
    @jwt_required()
    def checklist_status():
        return jsonify(motivation_service.get_checklist(_current_user_id())), 200

    @app.route("/api/motivation/checklist", methods=["PUT"])
    @jwt_required()
    def checklist_update():
        data = _json_body()
        result = motivation_service.update_checklist(_current_user_id(), data.get("checked"), on_date=data.get("date"))
        return jsonify(result), 200

    @app.route("/api/motivation/breath", methods=["GET"])
    @jwt_required()
    def breath_status():
        return jsonify(motivation_service.get_breath_status(_current_user_id())), 200

    @app.route("/api/motivation/breath/record", methods=["POST"])
    @jwt_required()
    def breath_record():
        return jsonify(motivation_service.record_breath_session(_current_user_id())), 200

    # --- Journal ---
    @app.route("/api/journal/today", methods=["GET"])
    @jwt_required()
    def journal_today():
        on_date = parse_date(request.args.get("date"))
        return jsonify(daily_log_service.get_journal(_current_user_id(), on_date=on_date)), 200

    @app.route("/api/journal/today", methods=["PUT"])
    @jwt_required()
    def journal_save():
        data = _json_body()
        result = daily_log_service.save_journal(
            _current_user_id(), data.get("journal"), mood=data.get("mood"), on_date=data.get("date")
        )
        return jsonify(result), 200

    @app.route("/api/journal", methods=["GET"])
    @jwt_required()
    def journal_list():
        return jsonify({"logs": daily_log_service.list_journal(_current_user_id())}), 200

    # --- Admin ---
    @app.route("/api/admin/users", methods=["GET"])
    @jwt_required()
    def admin_list_users():
        return jsonify({"users": account_service.list_users_with_balances(_current_user_id())}), 200

    @app.route("/api/admin/users/<int:user_id>/set-points", methods=["POST"])
    @jwt_required()
    def admin_set_points(user_id: int):
        result = account_service.set_user_points(_current_user_id(), user_id, _json_body().get("points"))
        return jsonify(result), 200

    @app.route("/api/admin/users/<int:user_id>/reset-pin", methods=["POST"])
    @jwt_required()
    def admin_reset_pin(user_id: int):
        result = account_service.reset_user_pin(_current_user_id(), user_id, _json_body().get("newPin"))
        return jsonify({"user": result}), 200

    @app.route("/api/admin/users/<int:user_id>", methods=["DELETE"])
    @jwt_required()
    def admin_delete_user(user_id: int):
        return jsonify(account_service.delete_user(_current_user_id(), user_id)), 200

    @app.route("/api/admin/reset", methods=["POST"])
    @jwt_required()
    def admin_reset():
        return jsonify(account_service.reset_all_data(_current_user_id())), 200


def seed_default_data() -> None:
    session = SessionLocal()
    try:
        added = motivation_service.seed_default_quotes(session)
        session.commit()
        if added:
            logging.info("Seeded %s motivation quotes", added)
    except Exception as e:
        session.rollback()
        logging.error(f"Seeding failed: {e}")
    finally:
        session.close()


app = create_app()  # module-level instance for WSGI servers


if __name__ == "__main__":
    app.run(debug=app.config.get("DEBUG", False))
