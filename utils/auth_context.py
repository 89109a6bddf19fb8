from collections import namedtuple
from functools import wraps
from flask import g, jsonify
from security.session import get_session_from_request
from models import db
from models.user import User

# authenticated identity handed to the booking/settlement code
Actor = namedtuple("Actor", ["id", "role"])


def load_current_user():
    sess, via = get_session_from_request()
    g.auth_via = via
    if not sess:
        g.user = None
        g.session = None
        g.actor = None
        return
    g.session = sess
    g.user = db.session.get(User, sess.user_id)
    g.actor = Actor(id=g.user.id, role=g.user.acting_role) if g.user else None


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
