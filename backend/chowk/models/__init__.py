from chowk.models.admin import AdminConfig
from chowk.models.identity import Identity, Role
from chowk.models.conversation import ConversationState
from chowk.models.job import Job, JobStatus
from chowk.models.application import Application, ApplicationStatus, AttendanceStatus, Party

__all__ = [
    "AdminConfig",
    "Identity",
    "Role",
    "ConversationState",
    "Job",
    "JobStatus",
    "Application",
    "ApplicationStatus",
    "AttendanceStatus",
    "Party",
]
