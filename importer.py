"""
Roster import: turns an uploaded XLSX/CSV file into trainee records for one
training.

Row-level problems never abort the upload. Each bad row is reported as
"Row N: ..." (N counts from 2, row 1 is the header) and the remaining valid
rows are inserted in a single store call.
"""
import csv
import io
import logging
import zipfile
from dataclasses import dataclass, field

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError as PydanticValidationError

from errors import NotFoundError, ValidationError
from schemas import RosterRow, format_validation_errors
from storage import storage as default_storage

ROSTER_COLUMNS = ('name', 'surname', 'email', 'phone_number', 'company_name')
ALLOWED_EXTENSIONS = ('.xlsx', '.csv')


@dataclass
class ImportResult:
    imported: int = 0
    failed: int = 0
    errors: list = field(default_factory=list)

    def to_dict(self):
        return {
            'success': True,
            'imported': self.imported,
            'failed': self.failed,
            'errors': list(self.errors),
        }


def allowed_roster_file(filename) -> bool:
    if not isinstance(filename, str):
        return False
    return filename.lower().endswith(ALLOWED_EXTENSIONS)


def cell_to_str(value) -> str:
    """Coerce a spreadsheet cell to text.

    Numeric cells (phone numbers typed into Excel) must not stay numbers, and
    whole floats lose their trailing '.0'.
    """
    if value is None:
        return ''
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _normalize_header(value) -> str:
    return cell_to_str(value).lower().replace(' ', '_')


def _is_xlsx(file_bytes, filename) -> bool:
    if filename and filename.lower().endswith('.csv'):
        return False
    if filename and filename.lower().endswith('.xlsx'):
        return True
    return zipfile.is_zipfile(io.BytesIO(file_bytes))


def _read_xlsx(file_bytes):
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as e:
        raise ValidationError(f'Could not read spreadsheet: {e}') from e
    try:
        if not workbook.worksheets:
            return []
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []
        keys = [_normalize_header(h) for h in header]
        records = []
        for row in rows:
            row = row or ()
            records.append({k: row[i] if i < len(row) else None for i, k in enumerate(keys) if k})
        return records
    finally:
        workbook.close()


def _read_csv(file_bytes):
    try:
        text = file_bytes.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise ValidationError('CSV file must be UTF-8 encoded') from e
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if not header:
        return []
    keys = [_normalize_header(h) for h in header]
    records = []
    for row in reader:
        records.append({k: row[i] if i < len(row) else None for i, k in enumerate(keys) if k})
    return records


def read_roster(file_bytes, filename=None):
    """Parse the first sheet (or the CSV) into dicts keyed by lower-cased headers."""
    if not file_bytes:
        return []
    if _is_xlsx(file_bytes, filename):
        return _read_xlsx(file_bytes)
    return _read_csv(file_bytes)


def normalize_row(record) -> dict:
    row = {column: cell_to_str(record.get(column)) for column in ROSTER_COLUMNS}
    if not row['company_name']:
        row['company_name'] = None
    return row


def _is_blank(record) -> bool:
    return not any(cell_to_str(v) for v in record.values())


def import_roster(file_bytes, training_id, filename=None, store=None) -> ImportResult:
    store = store or default_storage
    training = store.get_training(training_id)
    if not training:
        raise NotFoundError('Training not found')

    records = read_roster(file_bytes, filename)
    result = ImportResult()
    staged = []
    staged_emails = set()

    for index, record in enumerate(records):
        row_num = index + 2
        if _is_blank(record):
            continue
        try:
            validated = RosterRow.model_validate(normalize_row(record))
        except PydanticValidationError as e:
            result.errors.append(f"Row {row_num}: {', '.join(format_validation_errors(e))}")
            continue

        email = validated.email.lower()
        if email in staged_emails or store.get_trainee_by_email(email):
            result.errors.append(f'Row {row_num}: Email {email} already exists')
            continue

        staged_emails.add(email)
        staged.append({
            'name': validated.name,
            'surname': validated.surname,
            'email': email,
            'phone_number': validated.phone_number,
            'company_name': validated.company_name,
            'training_id': training.id,
            'training_date': training.date,
            'status': 'pending',
        })

    if staged:
        created = store.create_trainees(staged)
        result.imported = len(created)
    result.failed = len(result.errors)

    logging.info(
        f'[IMPORT] training={training.id} rows={len(records)} '
        f'imported={result.imported} failed={result.failed}'
    )
    return result
