from enum import Enum
from typing import Optional, List, Union

from pydantic import BaseModel, ConfigDict


class StudentStatus(str, Enum):
    INQUIRY_SUBMITTED = 'inquiry_submitted'
    DOCUMENTS_PENDING = 'documents_pending'
    APPLICATION_COMPLETED = 'application_completed'
    DROPOUT_RISK = 'dropout_risk'
    COUNSELOR_REQUIRED = 'counselor_required'
    ENGAGED = 'engaged'


class CallAnalysis(BaseModel):
    """Summary of the last voice call, as produced by the call analysis service."""
    model_config = ConfigDict(extra='ignore')

    emotion: Optional[str] = None
    concerns: Optional[str] = None
    nextSteps: Optional[str] = None
    requiresCounselorFollowUp: bool = False


class Student(BaseModel):
    """Student record as served by the admissions API."""
    model_config = ConfigDict(extra='ignore', use_enum_values=True)

    id: Union[str, int]
    name: str
    phone: str
    email: str
    inquiryType: str
    status: StudentStatus
    riskLevel: Optional[str] = None
    createdAt: str
    lastActivity: Optional[str] = None
    lastCallAnalysis: Optional[CallAnalysis] = None
    counselorBriefing: Optional[str] = None


class CallAnalysisSummary(BaseModel):
    model_config = ConfigDict(extra='ignore')

    emotion: Optional[str] = None
    requiresCounselorFollowUp: bool = False


class CallRecord(BaseModel):
    """One row of the recent voice calls feed."""
    model_config = ConfigDict(extra='ignore')

    id: Union[str, int]
    studentName: Optional[str] = None
    startTime: Optional[str] = None
    duration: Optional[int] = None
    status: Optional[str] = None
    analysis: Optional[CallAnalysisSummary] = None


class Analytics(BaseModel):
    model_config = ConfigDict(extra='ignore')

    totalStudents: int = 0
    totalCalls: int = 0
    totalNotifications: int = 0
    conversionRate: float = 0
    callSuccessRate: float = 0


class StudentsResponse(BaseModel):
    students: List[Student] = []


class CallsResponse(BaseModel):
    calls: List[CallRecord] = []


def to_records(models):
    """Dumps models to the plain camelCase dicts the dashboard components read."""
    return [m.model_dump(exclude_none=True) for m in models]
