import csv
import io

from sqlalchemy import text
from sqlalchemy.orm import Session

ATTENDANCE_COLUMNS = [
    "application_id", "job_id", "job_title", "skill_required", "city", "start_date", "end_date", "wage",
    "contractor_phone", "worker_phone", "worker_name", "national_id", "attendance_marked_at",
]


def export_attendance_csv(db: Session) -> str:
    """Confirmed attendance, newest first, one row per worker per job."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(ATTENDANCE_COLUMNS)

    rows = db.execute(
        text(
            """
            SELECT a.id AS application_id, j.id AS job_id, COALESCE(j.title, j.skill_required) AS job_title,
                   j.skill_required, j.city, j.start_date, j.end_date, j.wage, j.contractor_phone,
                   a.worker_phone, w.name AS worker_name, w.national_id, a.attendance_marked_at
            FROM applications a
            JOIN jobs j ON j.id = a.job_id
            JOIN identities w ON w.phone_number = a.worker_phone
            WHERE a.status = 'CONTRACTOR_CONFIRMED'
            ORDER BY a.attendance_marked_at DESC
            """
        )
    ).mappings()
    for row in rows:
        writer.writerow([row[column] for column in ATTENDANCE_COLUMNS])
    return output.getvalue()
