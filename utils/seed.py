from models import db
from models.user import Role
from utils.roles import DEFAULT_ROLES


def get_or_create_role(name: str) -> Role:
    role = Role.query.filter_by(name=name).first()
    if not role:
        role = Role(name=name)
        db.session.add(role)
        db.session.flush()
    return role


def seed_roles():
    """Create the marketplace role rows. Safe to re-run."""
    for name in DEFAULT_ROLES:
        get_or_create_role(name)
    db.session.commit()


def grant_role(user, name: str) -> bool:
    """Attach a role to a user. Returns False if they already had it."""
    role = get_or_create_role(name)
    if role in user.roles:
        return False
    user.roles.append(role)
    return True
