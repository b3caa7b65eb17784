# storefront/models/user.py
from datetime import datetime

from flask_login import UserMixin

from storefront.extensions import db, bcrypt

ROLES = ("ADMIN", "MANAGER", "TEAM", "CUSTOMER")
STAFF_ROLES = ("ADMIN", "MANAGER", "TEAM")
FULL_ACCESS_ROLES = ("ADMIN", "MANAGER")

PERMISSION_MODULES = (
    "products",
    "categories",
    "orders",
    "customers",
    "users",
    "promotions",
    "variations",
    "settings",
    "contacts",
    "payments",
    "content",
    "newsletter",
)
PERMISSION_ACTIONS = ("view", "create", "edit", "delete")


class User(db.Model, UserMixin):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(150), nullable=True)
    password_hash = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="CUSTOMER")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # customer profile
    phone = db.Column(db.String(50), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    address = db.Column(db.Text, nullable=True)
    is_new_customer = db.Column(db.Boolean, nullable=False, default=False)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)

    last_login_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    permissions = db.relationship(
        "Permission",
        back_populates="user",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Permission.module",
    )
    orders = db.relationship("Order", back_populates="user", lazy="dynamic")

    # --- Password handling ---------------------------------------------------
    def set_password(self, password: str) -> None:
        self.password_hash = bcrypt.generate_password_hash(password).decode("utf-8")

    def check_password(self, password: str) -> bool:
        if not self.password_hash or not password:
            return False
        try:
            return bcrypt.check_password_hash(self.password_hash, password)
        except ValueError:
            # malformed hash in the row
            return False

    # --- Authorisation -------------------------------------------------------
    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def permission_for(self, module: str):
        for perm in self.permissions:
            if perm.module == module:
                return perm
        return None

    def can(self, module: str, action: str = "view") -> bool:
        if not self.is_active:
            return False
        if self.role in FULL_ACCESS_ROLES:
            return True
        if self.role != "TEAM":
            return False
        perm = self.permission_for(module)
        return bool(perm and perm.allows(action))

    def get_id(self):
        return str(self.id)

    def __repr__(self):
        return f"<User {self.email} role={self.role}>"


class Permission(db.Model):
    __tablename__ = "permission"
    __table_args__ = (db.UniqueConstraint("user_id", "module", name="uq_permission_user_module"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    module = db.Column(db.String(50), nullable=False)
    can_view = db.Column(db.Boolean, nullable=False, default=False)
    can_create = db.Column(db.Boolean, nullable=False, default=False)
    can_edit = db.Column(db.Boolean, nullable=False, default=False)
    can_delete = db.Column(db.Boolean, nullable=False, default=False)

    user = db.relationship("User", back_populates="permissions")

    def normalize(self) -> None:
        """Create/edit/delete imply view; without view nothing else is granted."""
        if self.can_create or self.can_edit or self.can_delete:
            self.can_view = True
        if not self.can_view:
            self.can_create = self.can_edit = self.can_delete = False

    def allows(self, action: str) -> bool:
        return bool(getattr(self, f"can_{action}", False))

    def __repr__(self):
        return f"<Permission user={self.user_id} {self.module}>"
