"""
HTTP client for the admissions API: student records, voice calls, WhatsApp
notifications and dashboard analytics.
"""
import logging

import requests
from pydantic import ValidationError

from formatting import STATUSES
from models import Analytics, CallsResponse, StudentsResponse, to_records

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """A request to the admissions API failed."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class InvalidStatusError(ValueError):
    pass


class BackendClient:
    def __init__(self, base_url, timeout=30, token=None, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise BackendError(f"Could not reach the admissions API: {e}") from e

        if not response.ok:
            try:
                detail = response.json().get('error') or response.text
            except ValueError:
                detail = response.text
            logger.error("%s %s returned %s: %s", method, path, response.status_code, detail)
            raise BackendError(f"{method} {path} failed ({response.status_code}): {detail}",
                               status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"{method} {path} returned a non-JSON body", response.status_code) from e

    # --- Reads ---

    def get_students(self, filters=None):
        payload = self._request('GET', '/students', params=filters or {})
        try:
            parsed = StudentsResponse.model_validate(payload)
        except ValidationError as e:
            raise BackendError(f"Malformed students payload: {e}") from e
        return to_records(parsed.students)

    def get_analytics(self, date_range='7'):
        payload = self._request('GET', '/admin/analytics', params={'dateRange': date_range})
        try:
            return Analytics.model_validate(payload).model_dump()
        except ValidationError as e:
            raise BackendError(f"Malformed analytics payload: {e}") from e

    def get_calls(self, limit=50):
        payload = self._request('GET', '/admin/calls', params={'limit': limit})
        try:
            parsed = CallsResponse.model_validate(payload)
        except ValidationError as e:
            raise BackendError(f"Malformed calls payload: {e}") from e
        return to_records(parsed.calls)

    # --- Actions ---

    def trigger_voice_call(self, student_id):
        logger.info("Requesting voice call for student %s", student_id)
        return self._request('POST', '/voice/create-call', json={
            'studentId': student_id,
            'priority': 'high',
            'reason': 'manual_trigger',
        })

    def send_whatsapp_message(self, student_id, message_type):
        logger.info("Sending WhatsApp '%s' to student %s", message_type, student_id)
        return self._request('POST', '/notifications/whatsapp', json={
            'studentId': student_id,
            'messageType': message_type,
            'urgency': 'normal',
        })

    def update_student_status(self, student_id, new_status):
        if new_status not in STATUSES:
            raise InvalidStatusError(f"Unknown student status: {new_status!r}")
        logger.info("Updating student %s status to %s", student_id, new_status)
        return self._request('PUT', f'/students/{student_id}', json={
            'status': new_status,
            'updatedBy': 'counselor',
        })
