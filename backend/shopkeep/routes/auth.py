# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/shopkeep/routes/auth.py
"""
Authentication API routes

- Self-registration creates standard "user" accounts only
- Login returns a signed bearer token
- Role changes are an admin action
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service, token_service
from ..validation import ConflictError, NotFoundError, ValidationError, require_json_object
from ..decorators import require_auth, require_admin


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Register a standard user account and return a token.

    The role is always "user"; admins are promoted via PUT /users/<id>/role
    or the CLI.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    username = data.get("username")
    email = data.get("email")
    password = data.get("password")

    if not all([username, email, password]):
        return jsonify({"error": "username, email and password required"}), 400
    if not all(isinstance(v, str) for v in (username, email, password)):
        return jsonify({"error": "username, email and password must be strings"}), 400

    try:
        user = auth_service.create_user(username=username, email=email, password=password)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({
        "user": user.to_dict(),
        "token": token_service.issue_token(user.id),
    }), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and issue a bearer token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    username = data.get("username") or data.get("email")
    password = data.get("password")

    if not all([username, password]):
        return jsonify({"error": "username/email and password required"}), 400
    if not isinstance(username, str) or not isinstance(password, str):
        return jsonify({"error": "username/email and password must be strings"}), 400

    user = auth_service.authenticate(username, password)
    if not user:
        current_app.logger.info("Failed login for %s from %s", username, request.remote_addr)
        return jsonify({"error": "Invalid credentials"}), 401

    return jsonify({
        "user": user.to_dict(),
        "token": token_service.issue_token(user.id),
        "message": "Login successful",
    }), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.put("/users/<int:user_id>/role")
@require_auth
@require_admin
def set_role_route(user_id: int):
    try:
        data = require_json_object(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    role = data.get("role")
    if not role:
        return jsonify({"error": "role required"}), 400

    try:
        user = auth_service.set_role(user_id, role)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"user": user.to_dict()}), 200
