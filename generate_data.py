import json
import logging
import random
import uuid
from datetime import datetime, timedelta, timezone

from faker import Faker

from formatting import STATUSES
from backend_client import BackendError, InvalidStatusError
from models import StudentStatus

logger = logging.getLogger(__name__)

# Configuration
NUM_STUDENTS = 24
INQUIRY_TYPES = ['undergraduate', 'graduate', 'certificate', 'diploma', 'online_course',
                 'professional_development', 'continuing_education']
RISK_LEVELS = ['low', 'medium', 'high', None]
EMOTIONS = ['positive', 'neutral', 'anxious', 'confused', 'frustrated']
CONCERNS = ['Tuition fees', 'Visa timeline', 'Missing transcripts', 'Course workload', 'Scholarship eligibility']
NEXT_STEPS = ['Send document checklist', 'Schedule counselor call', 'Share fee structure',
              'Follow up in 3 days', 'Confirm application deadline']


def _iso(dt):
    return dt.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def generate_students(count=NUM_STUDENTS, seed=None, now=None):
    """Sample student records in the admissions API shape."""
    fake = Faker()
    rng = random.Random(seed)
    if seed is not None:
        Faker.seed(seed)
    now = now or datetime.now(timezone.utc)

    students = []
    for _ in range(count):
        created = now - timedelta(days=rng.randint(0, 60), minutes=rng.randint(0, 1440))
        status = rng.choices(STATUSES, weights=[0.3, 0.25, 0.15, 0.1, 0.05, 0.15], k=1)[0]
        student = {
            'id': uuid.UUID(int=rng.getrandbits(128)).hex[:12],
            'name': fake.name(),
            'phone': f"+1{rng.randint(2000000000, 9999999999)}",
            'email': fake.email(),
            'inquiryType': rng.choice(INQUIRY_TYPES),
            'status': status,
            'createdAt': _iso(created),
        }

        risk_level = rng.choice(RISK_LEVELS)
        if status == StudentStatus.DROPOUT_RISK.value:
            risk_level = 'high'
        if risk_level:
            student['riskLevel'] = risk_level

        # Roughly two thirds have had some activity since the inquiry
        if rng.random() < 0.65:
            student['lastActivity'] = _iso(created + timedelta(hours=rng.randint(1, 24 * 14)))

        if rng.random() < 0.5:
            needs_counselor = status in ('dropout_risk', 'counselor_required') or rng.random() < 0.2
            student['lastCallAnalysis'] = {
                'emotion': rng.choice(EMOTIONS),
                'concerns': rng.choice(CONCERNS),
                'nextSteps': rng.choice(NEXT_STEPS),
                'requiresCounselorFollowUp': needs_counselor,
            }
            if needs_counselor:
                student['counselorBriefing'] = fake.paragraph(nb_sentences=3)

        students.append(student)
    return students


def generate_calls(students, seed=None):
    rng = random.Random(seed)
    calls = []
    for student in students:
        analysis = student.get('lastCallAnalysis')
        if not analysis:
            continue
        completed = rng.random() < 0.85
        calls.append({
            'id': f"call_{student['id']}",
            'studentName': student['name'],
            'startTime': student.get('lastActivity') or student['createdAt'],
            'duration': rng.randint(30, 600) * 1000 if completed else None,
            'status': 'completed' if completed else 'failed',
            'analysis': {
                'emotion': analysis['emotion'],
                'requiresCounselorFollowUp': analysis['requiresCounselorFollowUp'],
            } if completed else None,
        })
    return calls


def save_students(students, path='students.json'):
    with open(path, 'w', encoding='utf-8') as f:
        json.dump({'students': students}, f, indent=2)


def load_students(path='students.json'):
    with open(path, encoding='utf-8') as f:
        data = json.load(f)
    return data['students'] if isinstance(data, dict) else data


class DemoBackend:
    """
    In-memory stand-in for the admissions API. Implements the same read and
    action surface as BackendClient so the dashboard runs without a server.
    """

    def __init__(self, students, calls=None, seed=None):
        self.students = [dict(s) for s in students]
        self.calls = calls if calls is not None else generate_calls(self.students, seed=seed)
        self.calls_made = 0
        self.notifications_sent = 0

    def _find(self, student_id):
        for student in self.students:
            if student['id'] == student_id:
                return student
        raise BackendError(f"Student not found: {student_id}", status_code=404)

    def get_students(self, filters=None):
        return [dict(s) for s in self.students]

    def get_analytics(self, date_range='7'):
        completed = [c for c in self.calls if c.get('status') == 'completed']
        applied = [s for s in self.students if s['status'] == 'application_completed']
        total = len(self.students)
        return {
            'totalStudents': total,
            'totalCalls': len(self.calls) + self.calls_made,
            'totalNotifications': self.notifications_sent,
            'conversionRate': round(len(applied) / total * 100) if total else 0,
            'callSuccessRate': round(len(completed) / len(self.calls) * 100) if self.calls else 0,
        }

    def get_calls(self, limit=50):
        return self.calls[:limit]

    def trigger_voice_call(self, student_id):
        student = self._find(student_id)
        self.calls_made += 1
        student['lastActivity'] = _iso(datetime.now(timezone.utc))
        logger.info("Demo voice call queued for %s", student['name'])
        return {'success': True}

    def send_whatsapp_message(self, student_id, message_type):
        student = self._find(student_id)
        self.notifications_sent += 1
        student['lastActivity'] = _iso(datetime.now(timezone.utc))
        logger.info("Demo WhatsApp '%s' sent to %s", message_type, student['name'])
        return {'success': True}

    def update_student_status(self, student_id, new_status):
        if new_status not in STATUSES:
            raise InvalidStatusError(f"Unknown student status: {new_status!r}")
        student = self._find(student_id)
        student['status'] = new_status
        student['lastActivity'] = _iso(datetime.now(timezone.utc))
        logger.info("Demo status for %s set to %s", student['name'], new_status)
        return {'success': True}


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    save_students(generate_students())
    print("Generated students.json")
