import os
import sys
from datetime import date
from io import BytesIO

import openpyxl
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app  # noqa: E402
from config import Settings  # noqa: E402
from models import db, Training, Trainee  # noqa: E402

TEST_USERNAME = 'admin'
TEST_PASSWORD = 'pass123'
ROSTER_HEADER = ['name', 'surname', 'email', 'phone_number', 'company_name']


def make_settings(**overrides):
    settings = Settings(
        secret_key='test-secret-key',
        database_url='sqlite://',
        auth_username=TEST_USERNAME,
        auth_password=TEST_PASSWORD,
        app_domain='certs.example.com',
        log_level='WARNING',
    )
    return settings.with_overrides(**overrides)


def _login(client, username=TEST_USERNAME, password=TEST_PASSWORD):
    return client.post('/api/login', json={'username': username, 'password': password})


def make_xlsx(rows, header=ROSTER_HEADER):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.append(header)
    for row in rows:
        ws.append([row.get(col) for col in header])
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def make_csv(rows, header=ROSTER_HEADER):
    lines = [','.join(header)]
    for row in rows:
        lines.append(','.join(str(row.get(col) or '') for col in header))
    return ('\n'.join(lines) + '\n').encode('utf-8')


@pytest.fixture()
def settings():
    return make_settings()


@pytest.fixture()
def app(settings):
    app = create_app(settings)
    app.config['TESTING'] = True
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth_client(client):
    resp = _login(client)
    assert resp.status_code == 200
    return client


@pytest.fixture()
def seed(app):
    """Insert rows directly and hand back plain ids."""

    class Seeder:
        def training(self, name='Forklift Safety', when=date(2025, 3, 5), **kw):
            with app.app_context():
                t = Training(name=name, date=when, **kw)
                db.session.add(t)
                db.session.commit()
                return t.id

        def trainee(self, training_id, email='jane@example.com', status='pending', **kw):
            with app.app_context():
                training = db.session.get(Training, training_id)
                values = dict(name='Jane', surname='Doe', phone_number='555-0100')
                values.update(kw)
                t = Trainee(
                    email=email,
                    training_id=training_id,
                    training_date=training.date,
                    status=status,
                    **values,
                )
                db.session.add(t)
                db.session.commit()
                return t.id

    return Seeder()
