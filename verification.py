"""
Public certificate verification.

Anyone holding a trainee id (the QR code target) or a certificate id can
confirm that the certificate is genuine. Only the fields needed for public
display are returned; internal ids other than the certificate id are left out.
"""
import logging

from models import CERTIFICATE_PREFIX
from storage import storage as default_storage
from utils import safe_parse_date

INVALID = {'valid': False}


def public_view(trainee, training) -> dict:
    training_date = safe_parse_date(trainee.training_date)
    return {
        'name': trainee.name,
        'surname': trainee.surname,
        'email': trainee.email,
        'phoneNumber': trainee.phone_number,
        'companyName': trainee.company_name,
        'trainingName': training.name,
        'trainingDate': training_date.isoformat() if training_date else None,
        'certificateId': trainee.certificate_id,
        'certificateUrl': trainee.certificate_url,
    }


def find_trainee(value, store=None):
    store = store or default_storage
    trainee = store.get_trainee(value)
    if trainee is None and isinstance(value, str) and value.startswith(CERTIFICATE_PREFIX):
        trainee = store.get_trainee_by_certificate_id(value)
    return trainee


def verify(value, store=None) -> dict:
    """Return {'valid': False} or {'valid': True, 'trainee': {...}}."""
    store = store or default_storage
    if not value or not isinstance(value, str):
        return dict(INVALID)
    trainee = find_trainee(value.strip(), store)
    if trainee is None or trainee.status != 'passed' or not trainee.certificate_id:
        logging.info(f'[VERIFY] No valid certificate for {value!r}')
        return dict(INVALID)
    training = store.get_training(trainee.training_id)
    if training is None:
        logging.warning(f'[VERIFY] Trainee {trainee.id} references missing training {trainee.training_id}')
        return dict(INVALID)
    return {'valid': True, 'trainee': public_view(trainee, training)}
