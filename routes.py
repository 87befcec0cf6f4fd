"""
Routes for the training traceability app, using a Flask Blueprint.
Admin endpoints live under /api and require the session cookie; the
verification endpoints are public.
"""
from flask import Blueprint, current_app, jsonify, render_template, request, send_file
from flask_login import login_required
from io import BytesIO
from types import SimpleNamespace
import logging

from pydantic import ValidationError as PydanticValidationError

from auth import get_credentials, get_sessions
from errors import NotFoundError, ValidationError, ConflictError
from generate_certificate import from_data_url, issue_certificate
from importer import allowed_roster_file, import_roster
from models import new_id
from schemas import (
    LoginRequest, TraineeCreate, TraineeUpdate, TrainingCreate, TrainingUpdate,
    format_validation_errors,
)
from storage import storage
from utils import pass_rate
from verification import verify

main_bp = Blueprint('main', __name__)


def _settings():
    return current_app.config['SETTINGS']


def _json_body():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def _validate(schema, payload):
    try:
        return schema.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError('Invalid request body', errors=format_validation_errors(e)) from e


def _get_training_or_404(training_id):
    training = storage.get_training(training_id)
    if not training:
        raise NotFoundError('Training not found')
    return training


def _get_trainee_or_404(trainee_id):
    trainee = storage.get_trainee(trainee_id)
    if not trainee:
        raise NotFoundError('Trainee not found')
    return trainee


# Auth
@main_bp.route('/api/login', methods=['POST'])
def login():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = request.form.to_dict()
    try:
        creds = LoginRequest.model_validate(payload)
    except PydanticValidationError:
        creds = None
    if creds is None or not get_credentials().verify(creds.username, creds.password):
        logging.info('[LOGIN] Rejected admin login attempt')
        return jsonify({'message': 'Invalid credentials'}), 401
    cookie = get_sessions().issue()
    logging.info('[LOGIN] Admin logged in')
    return cookie.apply(jsonify({'success': True}))


@main_bp.route('/api/logout', methods=['POST'])
@login_required
def logout():
    cookie = get_sessions().clear(request.cookies)
    return cookie.apply(jsonify({'success': True}))


@main_bp.route('/api/auth/status', methods=['GET'])
def auth_status():
    return jsonify({'isAuthenticated': get_sessions().check(request.cookies)})


# Trainings
@main_bp.route('/api/trainings', methods=['GET'])
@login_required
def list_trainings():
    return jsonify([t.to_dict() for t in storage.get_all_trainings()])


@main_bp.route('/api/trainings', methods=['POST'])
@login_required
def create_training():
    data = _validate(TrainingCreate, _json_body())
    training = storage.create_training(data.model_dump())
    logging.info(f'[TRAINING] Created {training.id} ({training.name})')
    return jsonify(training.to_dict()), 201


@main_bp.route('/api/trainings/<training_id>', methods=['GET'])
@login_required
def get_training(training_id):
    return jsonify(_get_training_or_404(training_id).to_dict())


@main_bp.route('/api/trainings/<training_id>', methods=['PATCH'])
@login_required
def update_training(training_id):
    data = _validate(TrainingUpdate, _json_body())
    training = storage.update_training(training_id, data.model_dump(exclude_unset=True))
    if not training:
        raise NotFoundError('Training not found')
    return jsonify(training.to_dict())


@main_bp.route('/api/trainings/<training_id>', methods=['DELETE'])
@login_required
def delete_training(training_id):
    if not storage.delete_training(training_id):
        raise NotFoundError('Training not found')
    logging.info(f'[TRAINING] Deleted {training_id} and its trainees')
    return jsonify({'success': True})


@main_bp.route('/api/trainings/<training_id>/trainees', methods=['GET'])
@login_required
def list_training_trainees(training_id):
    _get_training_or_404(training_id)
    return jsonify([t.to_dict() for t in storage.get_trainees_by_training_id(training_id)])


# Trainees
@main_bp.route('/api/trainees', methods=['GET'])
@login_required
def list_trainees():
    return jsonify([t.to_dict() for t in storage.get_all_trainees()])


def _with_certificate(trainee_id, values, training):
    """Render a certificate from the merged trainee values and add its fields.

    Nothing is written here; the caller saves status and certificate fields
    together in one commit.
    """
    subject = SimpleNamespace(
        id=trainee_id,
        name=values['name'],
        surname=values['surname'],
        full_name=f"{values['name']} {values['surname']}".strip(),
        training_date=values['training_date'],
    )
    issued = issue_certificate(subject, training, _settings())
    return dict(values, status='passed',
                certificate_id=issued.certificate_id,
                certificate_url=issued.certificate_url)


@main_bp.route('/api/trainees', methods=['POST'])
@login_required
def create_trainee():
    data = _validate(TraineeCreate, _json_body())
    training = _get_training_or_404(data.training_id)
    email = data.email.lower()
    if storage.get_trainee_by_email(email):
        raise ConflictError(f'Email {email} already exists')
    values = {
        'id': new_id(),
        'name': data.name,
        'surname': data.surname,
        'email': email,
        'phone_number': data.phone_number,
        'company_name': data.company_name or None,
        'training_id': training.id,
        'training_date': training.date,
        'status': data.status,
    }
    if data.status == 'passed':
        values = _with_certificate(values['id'], values, training)
    trainee = storage.create_trainee(values)
    logging.info(f'[TRAINEE] Created {trainee.id} in training {training.id}')
    return jsonify(trainee.to_dict()), 201


@main_bp.route('/api/trainees/<trainee_id>', methods=['GET'])
@login_required
def get_trainee(trainee_id):
    return jsonify(_get_trainee_or_404(trainee_id).to_dict())


@main_bp.route('/api/trainees/<trainee_id>', methods=['PATCH'])
@login_required
def update_trainee(trainee_id):
    data = _validate(TraineeUpdate, _json_body())
    changes = data.model_dump(exclude_unset=True)
    trainee = _get_trainee_or_404(trainee_id)

    if 'email' in changes:
        changes['email'] = changes['email'].lower()
    training_id = changes.get('training_id') or trainee.training_id
    if training_id != trainee.training_id:
        moved_to = _get_training_or_404(training_id)
        changes.setdefault('training_date', moved_to.date)

    if changes.get('status') == 'passed':
        training = _get_training_or_404(training_id)
        # The certificate shows the trainee as it will be after this update
        merged = {
            'name': trainee.name,
            'surname': trainee.surname,
            'training_date': trainee.training_date,
        }
        merged.update((k, changes[k]) for k in merged if k in changes)
        changes = _with_certificate(trainee.id, dict(changes, **merged), training)
        updated = storage.update_trainee(trainee_id, changes)
        logging.info(f'[TRAINEE] {trainee_id} passed, certificate {updated.certificate_id}')
    else:
        # Certificate fields are left untouched when status moves away from passed
        updated = storage.update_trainee(trainee_id, changes)
        if 'status' in changes:
            logging.info(f"[TRAINEE] {trainee_id} status -> {changes['status']}")
    return jsonify(updated.to_dict())


@main_bp.route('/api/trainees/<trainee_id>', methods=['DELETE'])
@login_required
def delete_trainee(trainee_id):
    if not storage.delete_trainee(trainee_id):
        raise NotFoundError('Trainee not found')
    logging.info(f'[TRAINEE] Deleted {trainee_id}')
    return jsonify({'success': True})


@main_bp.route('/api/trainees/<trainee_id>/certificate', methods=['GET'])
@login_required
def download_certificate(trainee_id):
    trainee = _get_trainee_or_404(trainee_id)
    if not trainee.certificate_id or not trainee.certificate_url:
        raise NotFoundError('Certificate not found')
    try:
        pdf_bytes = from_data_url(trainee.certificate_url)
    except ValueError as e:
        raise NotFoundError('Certificate not found') from e
    return send_file(
        BytesIO(pdf_bytes),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f'certificate_{trainee.certificate_id}.pdf',
    )


@main_bp.route('/api/trainees/upload', methods=['POST'])
@login_required
def upload_trainees():
    file = request.files.get('file')
    if file is None or file.filename == '':
        raise ValidationError('No file uploaded')
    training_id = (request.form.get('training_id') or '').strip()
    if not training_id:
        raise ValidationError('Training ID is required')
    if not allowed_roster_file(file.filename):
        raise ValidationError('Please upload an Excel (.xlsx) or CSV file')
    result = import_roster(file.read(), training_id, filename=file.filename)
    return jsonify(result.to_dict())


@main_bp.route('/api/stats', methods=['GET'])
@login_required
def stats():
    by_status = storage.count_trainees_by_status()
    total = sum(by_status.values())
    passed = by_status.get('passed', 0)
    return jsonify({
        'totalTrainings': storage.count_trainings(),
        'totalTrainees': total,
        'pending': by_status.get('pending', 0),
        'passed': passed,
        'failed': by_status.get('failed', 0),
        'certificatesIssued': passed,
        'passRate': pass_rate(passed, total),
    })


# Public verification
@main_bp.route('/api/verify/<path:value>', methods=['GET'])
def verify_api(value):
    try:
        return jsonify(verify(value))
    except Exception:
        logging.exception(f'[VERIFY] Lookup failed for {value!r}')
        return jsonify({'valid': False}), 500


@main_bp.route('/verify/<path:value>', methods=['GET'])
def verify_page(value):
    try:
        result = verify(value)
    except Exception:
        logging.exception(f'[VERIFY] Page lookup failed for {value!r}')
        return render_template('verify.html', result={'valid': False}, lookup=value), 500
    return render_template('verify.html', result=result, lookup=value)


@main_bp.route('/health', methods=['GET'])
def health_check():
    return jsonify({'status': 'healthy', 'service': 'training-trace'})
