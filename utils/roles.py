# Actor roles as seen by the booking/settlement code
CUSTOMER = "customer"
PROVIDER = "provider"
ADMIN = "admin"

# Role rows stored in the database
DEFAULT_ROLES = ["CUSTOMER", "PROVIDER", "ADMIN"]

# a user holding several roles acts with the strongest one
ROLE_PRECEDENCE = ("ADMIN", "PROVIDER", "CUSTOMER")


def actor_role(roles):
    names = set()
    for role in roles or []:
        name = role if isinstance(role, str) else getattr(role, "name", None)
        if name:
            names.add(name.upper())
    for name in ROLE_PRECEDENCE:
        if name in names:
            return name.lower()
    return None
