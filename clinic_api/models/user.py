from clinic_api.extensions import db, bcrypt
from .base import TimestampMixin


class User(db.Model, TimestampMixin):
    """Staff account that can sign in to the clinic dashboard."""
    __tablename__ = 'app_users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Role - 'admin' may hard-delete patients, 'staff' for everyone else
    role = db.Column(db.String(20), nullable=False, default='staff', index=True)
    avatar_url = db.Column(db.String(255))

    # Status
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        """Check if provided password matches hash"""
        return bcrypt.check_password_hash(self.password_hash, password)

    def has_any_role(self, *role_names):
        return self.role in role_names

    def to_dict(self):
        """Public view of the account (never includes the password hash)"""
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'avatar_url': self.avatar_url,
        }

    def __repr__(self):
        return f"<User {self.email} - {self.role}>"
