from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, UTC
import json
import uuid

db = SQLAlchemy()

TRAINEE_STATUSES = ('pending', 'passed', 'failed')
CERTIFICATE_PREFIX = 'CERT-'


def new_id():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(UTC)


def _iso(value):
    return value.isoformat() if value is not None else None


class Training(db.Model):
    __tablename__ = 'trainings'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    date = db.Column(db.Date, nullable=False)
    duration = db.Column(db.String(100))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    # Deleting a training removes its trainees in the same flush
    trainees = db.relationship(
        'Trainee',
        back_populates='training',
        cascade='all, delete-orphan',
        passive_deletes=True,
        lazy=True,
        order_by='Trainee.created_at',
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'date': _iso(self.date),
            'duration': self.duration,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Training(id={self.id}, name='{self.name}', date={self.date})>"


class Trainee(db.Model):
    __tablename__ = 'trainees'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    surname = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone_number = db.Column(db.String(50), nullable=False)
    company_name = db.Column(db.String(255))
    training_id = db.Column(
        db.String(36),
        db.ForeignKey('trainings.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    # Copied from the training when the trainee is created, not live-linked
    training_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    certificate_id = db.Column(db.String(255), index=True)
    # data:application/pdf;base64,... so it can grow well past a varchar
    certificate_url = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    training = db.relationship('Training', back_populates='trainees')

    @property
    def full_name(self):
        return f'{self.name} {self.surname}'.strip()

    @property
    def has_certificate(self):
        return bool(self.certificate_id)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'surname': self.surname,
            'email': self.email,
            'phoneNumber': self.phone_number,
            'companyName': self.company_name,
            'trainingId': self.training_id,
            'trainingDate': _iso(self.training_date),
            'status': self.status,
            'certificateId': self.certificate_id,
            'certificateUrl': self.certificate_url,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Trainee(id={self.id}, email='{self.email}', status='{self.status}')>"


class AuthSession(db.Model):
    """Server-held login session, used when AUTH_SESSION_BACKEND=server."""
    __tablename__ = 'auth_sessions'

    sid = db.Column(db.String(128), primary_key=True)
    data = db.Column(db.Text, nullable=False, default='{}')
    expire = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    @property
    def claims(self):
        try:
            return json.loads(self.data or '{}')
        except (TypeError, ValueError):
            return {}

    def is_expired(self, now=None):
        now = now or _utcnow()
        expire = self.expire
        # SQLite hands back naive datetimes even for timezone=True columns
        if expire.tzinfo is None:
            expire = expire.replace(tzinfo=UTC)
        return expire <= now
