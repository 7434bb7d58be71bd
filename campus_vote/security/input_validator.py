# campus_vote/security/input_validator.py

import re
import html
import bleach
from datetime import datetime, timezone
from urllib.parse import urlparse

from campus_vote.database.models import ElectionStatus
from campus_vote.errors import ValidationError

# Input validation and sanitization for election, candidate, vote and account payloads

MIN_CANDIDATES = 2

TITLE_MAX_LENGTH = 200
NAME_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 5000
URL_MAX_LENGTH = 2048


class InputValidator:
    def __init__(self):
        self.patterns = {
            'email': re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'),
            'student_id': re.compile(r'^[A-Za-z0-9/_-]{1,64}$'),
            'xss_script': re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL),
        }

    def sanitize_string(self, input_str, max_length=255, field='value'):
        if not isinstance(input_str, str):
            raise ValidationError(f"{field} must be a string.")
        if len(input_str) > max_length:
            raise ValidationError(f"{field} must be at most {max_length} characters.")

        sanitized = self.patterns['xss_script'].sub('', input_str)
        # Stored as plain text: markup is stripped and entities decoded again
        sanitized = bleach.clean(sanitized, tags=set(), attributes={}, strip=True)
        return html.unescape(sanitized).strip()

    def _optional_text(self, value, max_length, field):
        if value is None:
            return None
        cleaned = self.sanitize_string(value, max_length=max_length, field=field)
        return cleaned or None

    def validate_email(self, email):
        return isinstance(email, str) and bool(self.patterns['email'].match(email))

    def parse_datetime(self, value, field):
        if value in (None, ''):
            return None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith('Z'):
                text = text[:-1] + '+00:00'
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                raise ValidationError(f"{field} must be an ISO-8601 date and time.")
        else:
            raise ValidationError(f"{field} must be an ISO-8601 date and time.")
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def validate_image_url(self, value):
        if value in (None, ''):
            return None
        if not isinstance(value, str) or len(value) > URL_MAX_LENGTH:
            raise ValidationError("image_url must be a URL.")
        parsed = urlparse(value.strip())
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValidationError("image_url must be an http or https URL.")
        return value.strip()

    def validate_election_fields(self, data, partial=False):
        if not isinstance(data, dict):
            raise ValidationError("Election data must be an object.")

        cleaned = {}
        if 'title' in data or not partial:
            title = self._optional_text(data.get('title'), TITLE_MAX_LENGTH, 'title')
            if not title:
                raise ValidationError("title is required.")
            cleaned['title'] = title

        if 'description' in data:
            cleaned['description'] = self._optional_text(
                data['description'], DESCRIPTION_MAX_LENGTH, 'description')

        if 'status' in data:
            try:
                cleaned['status'] = ElectionStatus(data['status'])
            except ValueError:
                allowed = ', '.join(s.value for s in ElectionStatus)
                raise ValidationError(f"status must be one of: {allowed}.")

        if 'is_anonymous' in data:
            if not isinstance(data['is_anonymous'], bool):
                raise ValidationError("is_anonymous must be true or false.")
            cleaned['is_anonymous'] = data['is_anonymous']

        for field in ('start_date', 'end_date'):
            if field in data:
                cleaned[field] = self.parse_datetime(data[field], field)

        return cleaned

    def check_date_window(self, start_date, end_date):
        start_date = self.parse_datetime(start_date, 'start_date')
        end_date = self.parse_datetime(end_date, 'end_date')
        if start_date and end_date and end_date < start_date:
            raise ValidationError("end_date must not be before start_date.")

    def validate_candidate_fields(self, data, partial=False):
        if not isinstance(data, dict):
            raise ValidationError("Candidate data must be an object.")

        cleaned = {}
        if 'name' in data or not partial:
            name = self._optional_text(data.get('name'), NAME_MAX_LENGTH, 'name')
            if not name:
                raise ValidationError("Candidate name is required.")
            cleaned['name'] = name
        if 'description' in data:
            cleaned['description'] = self._optional_text(
                data['description'], DESCRIPTION_MAX_LENGTH, 'description')
        if 'image_url' in data:
            cleaned['image_url'] = self.validate_image_url(data['image_url'])
        return cleaned

    def validate_candidate_batch(self, candidates, minimum=MIN_CANDIDATES):
        """Clean a candidate list submitted with a new election.

        Entries with a blank name are dropped, the same way an empty form row
        is ignored; at least ``minimum`` named candidates must remain.
        """
        if candidates is None:
            candidates = []
        if not isinstance(candidates, list):
            raise ValidationError("candidates must be a list.")

        cleaned = []
        for entry in candidates:
            if not isinstance(entry, dict):
                raise ValidationError("Each candidate must be an object.")
            name = entry.get('name')
            if name is None or (isinstance(name, str) and not name.strip()):
                continue
            cleaned.append(self.validate_candidate_fields(entry))

        if len(cleaned) < minimum:
            raise ValidationError(f"Please add at least {minimum} candidates.", minimum=minimum)
        return cleaned

    def validate_registration(self, data):
        if not isinstance(data, dict):
            raise ValidationError("Registration data must be an object.")
        email = data.get('email')
        if isinstance(email, str):
            email = email.strip()
        if not self.validate_email(email):
            raise ValidationError("A valid email address is required.")
        password = data.get('password')
        if not isinstance(password, str) or not password:
            raise ValidationError("password is required.")
        full_name = self._optional_text(data.get('full_name') or '', NAME_MAX_LENGTH, 'full_name') or ''
        student_id = data.get('student_id')
        if student_id not in (None, ''):
            if not isinstance(student_id, str) or not self.patterns['student_id'].match(student_id.strip()):
                raise ValidationError("student_id may only contain letters, digits, '/', '_' and '-'.")
            student_id = student_id.strip()
        else:
            student_id = None
        return {
            'email': email.lower(),
            'password': password,
            'full_name': full_name,
            'student_id': student_id,
        }


validator = InputValidator()
