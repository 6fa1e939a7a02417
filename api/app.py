"""Flask REST API exposing the car ledger services."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from carledger.exceptions import (
    AuthenticationError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from carledger.fixtures import bootstrap_sample_data
from carledger.services import DEFAULT_PAGE_SIZE, ExpenseService
from carledger.storage import Clock, ExpenseStore, JSONStorage, load_expenses
from carledger.validators import parse_positive_int

USER_HEADER = "X-User-Id"


def load_config(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Read settings from the environment, letting ``overrides`` win."""
    config: Dict[str, Any] = {
        "ENV": os.getenv("CAR_LEDGER_ENV", "prod").lower(),
        "ALLOWED_ORIGINS": os.getenv("CAR_LEDGER_ALLOWED_ORIGINS"),
        "SEED": os.getenv("CAR_LEDGER_SEED", "").lower(),
        "DATA_DIR": os.getenv("CAR_LEDGER_DATA_DIR"),
        "PAGE_LIMIT": parse_positive_int(
            os.getenv("CAR_LEDGER_PAGE_LIMIT"), "CAR_LEDGER_PAGE_LIMIT", DEFAULT_PAGE_SIZE
        ),
    }
    if overrides:
        config.update(overrides)
    return config


def create_app(
    store: Optional[ExpenseStore] = None,
    clock: Optional[Clock] = None,
    config: Optional[Mapping[str, Any]] = None,
) -> Flask:
    app = Flask(__name__)
    settings = load_config(config)
    app.config["CAR_LEDGER"] = settings

    if settings["ENV"] in {"dev", "development"}:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    else:
        allowed_origins = settings["ALLOWED_ORIGINS"]
        if allowed_origins:
            origins = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
            CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)
        else:
            CORS(app)

    store = store if store is not None else ExpenseStore(clock=clock)
    if settings["DATA_DIR"]:
        store.seed(load_expenses(JSONStorage(Path(settings["DATA_DIR"]))))
    if settings["SEED"] == "sample":
        bootstrap_sample_data(store, clock() if clock else None)
    expense_service = ExpenseService(store, clock=clock)
    app.extensions["car_ledger"] = expense_service

    def _success(payload: Any, status: int = 200):
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc)}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(AuthenticationError)
    def handle_authentication_error(exc: AuthenticationError):
        return _handle_error(exc, 401, "Authentication required")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    def _current_owner() -> str:
        owner_id = (request.headers.get(USER_HEADER) or "").strip()
        if not owner_id:
            raise AuthenticationError(f"Missing {USER_HEADER} header")
        return owner_id

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    @app.get("/expenses")
    def list_expenses():
        owner_id = _current_owner()
        page = expense_service.list(
            owner_id,
            car_id=request.args.get("car_id"),
            category=request.args.get("category"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            page=parse_positive_int(request.args.get("page"), "page", 1),
            limit=parse_positive_int(request.args.get("limit"), "limit", settings["PAGE_LIMIT"]),
        )
        return _success(page.to_dict())

    @app.post("/expenses")
    def create_expense():
        owner_id = _current_owner()
        expense = expense_service.add(owner_id, _json_body())
        return _success(expense.to_dict(), 201)

    @app.get("/expenses/stats")
    def expense_stats():
        owner_id = _current_owner()
        stats = expense_service.stats(
            owner_id,
            car_id=request.args.get("car_id"),
            period=request.args.get("period"),
        )
        return _success(stats.to_dict())

    @app.get("/expenses/<expense_id>")
    def get_expense(expense_id: str):
        expense = expense_service.get(expense_id, _current_owner())
        if expense is None:
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        return _success(expense.to_dict())

    @app.route("/expenses/<expense_id>", methods=["PUT", "PATCH"])
    def update_expense(expense_id: str):
        owner_id = _current_owner()
        expense = expense_service.update(expense_id, _json_body(), owner_id)
        if expense is None:
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        return _success(expense.to_dict())

    @app.delete("/expenses/<expense_id>")
    def delete_expense(expense_id: str):
        if not expense_service.delete(expense_id, _current_owner()):
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        return _success({"deleted": True})

    return app
