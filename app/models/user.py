from app.extensions import db, bcrypt
from .base import TimestampMixin, isoformat

ROLES = ('admin', 'receptionist', 'doctor', 'pharmacist', 'patient')


class User(db.Model, TimestampMixin):
    """Identity record. Users are deactivated via is_active, never deleted."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Personal Information
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False, default='')
    phone = db.Column(db.String(20))

    # One of ROLES
    role = db.Column(db.String(20), nullable=False, index=True)

    # Status
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    last_login = db.Column(db.DateTime, nullable=True)

    # Doctor-specific
    specialization = db.Column(db.String(120))
    qualification = db.Column(db.String(120))
    license_number = db.Column(db.String(64), unique=True, nullable=True)
    consultation_fee = db.Column(db.Numeric(10, 2), default=0)

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        """Check if provided password matches hash"""
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def doctor_name(self):
        return f"Dr. {self.full_name}"

    def to_dict(self):
        """Projection returned by the API; never includes the password hash."""
        data = {
            'id': self.id,
            'email': self.email,
            'role': self.role,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'phone': self.phone,
            'isActive': self.is_active,
            'lastLogin': isoformat(self.last_login),
            'createdAt': isoformat(self.created_at),
        }
        if self.role == 'doctor':
            data.update(self.to_doctor_dict())
        return data

    def to_doctor_dict(self):
        return {
            'specialization': self.specialization,
            'qualification': self.qualification,
            'licenseNumber': self.license_number,
            'consultationFee': float(self.consultation_fee or 0),
        }

    def to_public_doctor_dict(self):
        return {
            'id': self.id,
            'name': self.doctor_name,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'specialization': self.specialization,
            'qualification': self.qualification,
            'consultationFee': float(self.consultation_fee or 0),
        }

    def __repr__(self):
        return f"<User {self.email} ({self.full_name}) - {self.role}>"
