from flask import Blueprint, jsonify, current_app, g

from models import db
from models.user import User
from security.password import hash_password, verify_password, validate_password
from security.session import create_session, revoke_session, raw_token_from_request
from security.csrf import issue_csrf_token
from utils.audit import log_event
from utils.request_data import json_body, text_fields
from utils.seed import grant_role
from utils.auth_context import login_required

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

SELF_SERVICE_ROLES = {"customer": "CUSTOMER", "provider": "PROVIDER"}


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


@auth_bp.post("/register")
def register():
    data = json_body()
    email, password, full_name, role = text_fields(data, "email", "password", "full_name", "role")
    email = email.strip().lower()
    full_name = full_name.strip() or None
    role = (role or "customer").strip().lower()

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    errors = validate_password(password)
    if errors:
        return jsonify(error="Password does not meet policy", details=errors), 400

    if role == "admin":
        expected = current_app.config.get("ADMIN_SIGNUP_CODE")
        if not expected or data.get("admin_code") != expected:
            return jsonify(error="Invalid admin signup code"), 403
        role_name = "ADMIN"
    elif role in SELF_SERVICE_ROLES:
        role_name = SELF_SERVICE_ROLES[role]
    else:
        return jsonify(error="role must be customer or provider"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    user = User(email=email, password_hash=hash_password(password), full_name=full_name)
    db.session.add(user)
    db.session.flush()

    grant_role(user, role_name)

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id, metadata={"role": role_name})

    return jsonify(id=user.id, message="Registered successfully"), 201


@auth_bp.post("/login")
def login():
    data = json_body()
    email, password = text_fields(data, "email", "password")
    email = email.strip().lower()

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    raw_token = create_session(user.id)
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "homeservices_session")
    max_age = current_app.config.get("SESSION_LIFETIME_SECONDS", 30 * 24 * 3600)

    resp = jsonify(message="Login OK", token=raw_token)
    resp.set_cookie(
        cookie_name,
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=max_age,
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    provider = g.user.provider
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        full_name=g.user.full_name,
        role=g.actor.role,
        provider_id=provider.id if provider else None,
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "homeservices_session")
    raw_token, _ = raw_token_from_request()

    revoke_session(raw_token)
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
