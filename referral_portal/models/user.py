"""Portal user.

Not a database model: users live in the identity hub. A PortalUser wraps
the Identity verified from the hub cookie on each request so Flask-Login's
current_user works in views and templates.
"""

from flask_login import UserMixin


class PortalUser(UserMixin):
    def __init__(self, identity):
        self.identity = identity

    def get_id(self):
        return self.identity.phone

    @property
    def phone(self):
        return self.identity.phone

    @property
    def display_name(self):
        name = (self.identity.name or "").strip()
        return name or self.identity.phone

    @property
    def is_admin(self):
        return bool(self.identity.is_admin)

    def __repr__(self):
        return f"<PortalUser {self.identity.phone}>"
