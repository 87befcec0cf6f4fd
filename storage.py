"""
Entity store for trainings and trainees.

Thin pass-through over the Flask-SQLAlchemy session. Every mutating call
commits on its own; bulk trainee creation is a single commit so a failure
leaves no partial batch behind.
"""
import logging
from datetime import datetime, UTC

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from errors import ConflictError
from models import db, Training, Trainee

TRAINING_FIELDS = ('name', 'description', 'date', 'duration')
TRAINEE_FIELDS = (
    'name', 'surname', 'email', 'phone_number', 'company_name',
    'training_id', 'training_date', 'status', 'certificate_id', 'certificate_url',
)


def _apply(instance, data, allowed):
    for key, value in data.items():
        if key in allowed:
            setattr(instance, key, value)


class DatabaseStorage:

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session or db.session

    def _commit(self, what):
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logging.warning(f'[DB] Integrity error while saving {what}: {e.orig}')
            raise ConflictError(f'{what} conflicts with an existing record') from e

    # Training operations
    def get_all_trainings(self):
        return self.session.scalars(
            select(Training).order_by(Training.created_at, Training.id)
        ).all()

    def get_training(self, training_id):
        if not training_id:
            return None
        return self.session.get(Training, training_id)

    def create_training(self, data):
        training = Training()
        _apply(training, data, TRAINING_FIELDS)
        self.session.add(training)
        self._commit('Training')
        return training

    def update_training(self, training_id, data):
        training = self.get_training(training_id)
        if not training:
            return None
        _apply(training, data, TRAINING_FIELDS)
        training.updated_at = datetime.now(UTC)
        self._commit('Training')
        return training

    def delete_training(self, training_id):
        training = self.get_training(training_id)
        if not training:
            return False
        # ORM cascade deletes the trainees in the same transaction
        self.session.delete(training)
        self.session.commit()
        return True

    # Trainee operations
    def get_all_trainees(self):
        return self.session.scalars(
            select(Trainee).order_by(Trainee.created_at, Trainee.id)
        ).all()

    def get_trainees_by_training_id(self, training_id):
        return self.session.scalars(
            select(Trainee)
            .where(Trainee.training_id == training_id)
            .order_by(Trainee.created_at, Trainee.id)
        ).all()

    def get_trainee(self, trainee_id):
        if not trainee_id:
            return None
        return self.session.get(Trainee, trainee_id)

    def get_trainee_by_email(self, email):
        return self.session.scalars(
            select(Trainee).where(Trainee.email == email)
        ).first()

    def get_trainee_by_certificate_id(self, certificate_id):
        return self.session.scalars(
            select(Trainee).where(Trainee.certificate_id == certificate_id)
        ).first()

    def create_trainee(self, data):
        # id may be assigned up front so a certificate can be rendered before insert
        trainee = Trainee(id=data['id']) if data.get('id') else Trainee()
        _apply(trainee, data, TRAINEE_FIELDS)
        self.session.add(trainee)
        self._commit('Trainee')
        return trainee

    def create_trainees(self, rows):
        trainees = []
        for data in rows:
            trainee = Trainee()
            _apply(trainee, data, TRAINEE_FIELDS)
            trainees.append(trainee)
        self.session.add_all(trainees)
        self._commit('Trainee batch')
        return trainees

    def update_trainee(self, trainee_id, data):
        trainee = self.get_trainee(trainee_id)
        if not trainee:
            return None
        _apply(trainee, data, TRAINEE_FIELDS)
        trainee.updated_at = datetime.now(UTC)
        self._commit('Trainee')
        return trainee

    def delete_trainee(self, trainee_id):
        trainee = self.get_trainee(trainee_id)
        if not trainee:
            return False
        self.session.delete(trainee)
        self.session.commit()
        return True

    def count_trainees_by_status(self):
        rows = self.session.execute(
            select(Trainee.status, db.func.count(Trainee.id)).group_by(Trainee.status)
        ).all()
        return {status: count for status, count in rows}

    def count_trainings(self):
        return self.session.scalar(select(db.func.count(Training.id))) or 0


storage = DatabaseStorage()
