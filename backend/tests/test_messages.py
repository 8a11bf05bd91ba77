import base64
import re

from sqlalchemy.exc import SQLAlchemyError

from chowk.config import settings
from chowk.models.application import Application, ApplicationStatus
from chowk.models.identity import Identity
from chowk.models.job import Job, JobStatus
from chowk.services.language_service import IdCardResult
from chowk.services.message_service import MessageService
from chowk.utils.clock import end_of_day_iso

INBOUND = "/api/v1/messages/inbound"
W1 = "919100000001"
C1 = "919200000001"


class TestInboundScenario:
    def _say(self, client, sender, text=None, image=None):
        body = {"sender": sender, "text": text}
        if image is not None:
            body["image_base64"] = base64.b64encode(image).decode()
        r = client.post(INBOUND, json=body)
        assert r.status_code == 200
        return r.json()["reply"]

    def _register_worker(self, client, sender="9100000001@s.whatsapp.net"):
        self._say(client, sender, "hi")
        self._say(client, sender, "Ramesh Kumar")
        self._say(client, sender, "painter")
        self._say(client, sender, "Noida, Sector 62")
        return self._say(client, sender, "skip")

    def _post_job(self, client, sender="9200000001", workers="1"):
        self._say(client, sender, "post job")
        self._say(client, sender, "House Painting")
        self._say(client, sender, "painter")
        self._say(client, sender, "800")
        self._say(client, sender, "Noida, Sector 18")
        return self._say(client, sender, workers)

    def test_worker_and_contractor_end_to_end(self, client, notifier, db, id_reader, monkeypatch):
        monkeypatch.setattr(id_reader, "read", lambda image: IdCardResult(id_number="XXXX-XXXX-4321"))
        for text in ("hi", "Ramesh Kumar", "painter", "Noida, Sector 62"):
            self._say(client, "9100000001@s.whatsapp.net", text)
        assert "Registration complete" in self._say(client, "9100000001@s.whatsapp.net", None, image=b"\xff\xd8card")
        assert db.get(Identity, W1).is_onboarded

        assert "Job posted" in self._post_job(client)
        # Matching ran as a background task once the reply was sent.
        alert = notifier.to(W1)[-1]
        job_ref = re.search(r"Reply YES (\S+)", alert).group(1)
        assert "1 worker(s) have been notified" in notifier.to(C1)[-1]

        reply = self._say(client, "9100000001", f"YES {job_ref}")
        assert "Accepted" in reply
        otp = re.search(r"Your OTP is: (\d{6})", notifier.to(W1)[-1]).group(1)
        assert any("Ramesh Kumar has accepted" in m for m in notifier.to(C1))
        assert any("have been filled" in m for m in notifier.to(C1))

        reply = self._say(client, "9200000001", otp)
        assert "OTP verified" in reply
        assert "Ramesh Kumar" in reply
        assert W1 in reply
        assert "XXXX-XXXX-4321" in reply

        db.expire_all()
        application = db.query(Application).one()
        assert application.status == ApplicationStatus.CONTRACTOR_CONFIRMED
        job = db.query(Job).one()
        assert job.status == JobStatus.FILLED
        assert db.get(Identity, W1).available_from == end_of_day_iso(job.end_date)
        assert "Attendance confirmed" in notifier.to(W1)[-1]

        # The code is spent.
        assert "Invalid or expired" in self._say(client, "9200000001", otp)

    def test_yes_without_job_id_takes_recent_job(self, client, notifier):
        self._register_worker(client)
        self._post_job(client, workers="2")

        assert "Accepted" in self._say(client, "9100000001", "haan")
        assert re.search(r"Your OTP is: \d{6}", notifier.to(W1)[-1])

    def test_second_yes_reissues_code(self, client, notifier):
        self._register_worker(client)
        self._post_job(client, workers="2")
        job_ref = re.search(r"Reply YES (\S+)", notifier.to(W1)[-1]).group(1)

        self._say(client, "9100000001", f"YES {job_ref}")
        reply = self._say(client, "9100000001", f"YES {job_ref}")
        assert "fresh OTP" in reply

    def test_second_yes_on_last_place_reissues_code(self, client, notifier, db):
        self._register_worker(client)
        self._post_job(client, workers="1")
        job_ref = re.search(r"Reply YES (\S+)", notifier.to(W1)[-1]).group(1)
        self._say(client, "9100000001", f"YES {job_ref}")
        db.expire_all()
        assert db.query(Job).one().status == JobStatus.FILLED

        reply = self._say(client, "9100000001", f"YES {job_ref}")
        assert "fresh OTP" in reply
        otp = re.search(r"Your OTP is: (\d{6})", notifier.to(W1)[-1]).group(1)
        assert "OTP verified" in self._say(client, "9200000001", otp)

    def test_other_worker_still_told_job_filled(self, client, notifier, make_worker):
        self._register_worker(client)
        make_worker("919100000002")
        self._post_job(client, workers="1")
        job_ref = re.search(r"Reply YES (\S+)", notifier.to(W1)[-1]).group(1)
        self._say(client, "9100000001", f"YES {job_ref}")

        assert "already been filled" in self._say(client, "9100000002", f"YES {job_ref}")

    def test_worker_lists_open_jobs(self, client, notifier):
        self._register_worker(client)
        self._post_job(client, workers="2")
        job_ref = re.search(r"Reply YES (\S+)", notifier.to(W1)[-1]).group(1)

        reply = self._say(client, "9100000001", "jobs")
        assert "Open jobs for you" in reply
        assert job_ref in reply
        assert "House Painting" in reply

    def test_jobs_without_registration(self, client):
        assert "not registered" in self._say(client, "9100000077", "jobs")

    def test_job_details(self, client, notifier):
        self._register_worker(client)
        self._post_job(client, workers="2")
        job_ref = re.search(r"Reply YES (\S+)", notifier.to(W1)[-1]).group(1)
        self._say(client, "9100000001", f"YES {job_ref}")

        reply = self._say(client, "9100000001", f"job {job_ref}")
        assert "House Painting" in reply
        assert "Positions open: 1 of 2" in reply
        assert "Workers:" not in reply

        reply = self._say(client, "9200000001", f"job {job_ref}")
        assert f"Ramesh Kumar ({W1}): WORKER_ACCEPTED" in reply

    def test_job_details_unknown_id(self, client):
        assert "Job not found" in self._say(client, "9100000001", "job 0000abcd")

    def test_yes_when_nothing_open(self, client):
        self._register_worker(client)
        assert "no open jobs" in self._say(client, "9100000001", "yes")

    def test_unregistered_yes(self, client):
        assert "not registered" in self._say(client, "9100000077", "yes abcd1234")

    def test_worker_cancels_by_chat(self, client, notifier):
        self._register_worker(client)
        self._post_job(client, workers="2")
        job_ref = re.search(r"Reply YES (\S+)", notifier.to(W1)[-1]).group(1)
        self._say(client, "9100000001", f"YES {job_ref}")

        assert "Cancelled" in self._say(client, "9100000001", f"cancel {job_ref}")
        assert "Ramesh Kumar cancelled" in notifier.to(C1)[-1]

    def test_contractor_cancels_whole_job(self, client, notifier, db):
        self._register_worker(client)
        self._post_job(client, workers="2")
        job_ref = re.search(r"Reply YES (\S+)", notifier.to(W1)[-1]).group(1)
        self._say(client, "9100000001", f"YES {job_ref}")

        reply = self._say(client, "9200000001", f"cancel {job_ref}")
        assert "1 worker(s) notified" in reply
        assert db.query(Job).one().status == JobStatus.CANCELLED

    def test_cancel_keyword_leaves_flow(self, client, db):
        self._say(client, "9100000001", "hi")
        assert "cancelled" in self._say(client, "9100000001", "cancel")
        assert "I can help you" in self._say(client, "9100000001", "Ramesh")

    def test_unknown_text_gets_help(self, client):
        assert "I can help you" in self._say(client, "9100000001", "what is this")

    def test_unexpected_image(self, client):
        assert "not expecting one" in self._say(client, "9100000001", None, image=b"jpeg")

    def test_id_image_in_onboarding(self, client, id_reader, monkeypatch, db):
        monkeypatch.setattr(id_reader, "read", lambda image: IdCardResult(id_number="XXXX-1234"))
        for text in ("hi", "Ramesh Kumar", "painter", "Noida"):
            self._say(client, "9100000001", text)
        assert "verified" in self._say(client, "9100000001", None, image=b"\xff\xd8card")
        assert db.get(Identity, W1).national_id == "XXXX-1234"

    def test_database_failure_gives_apology(self, client, monkeypatch):
        def boom(self, *args):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(MessageService, "_route", boom)
        assert "something went wrong" in self._say(client, "9100000001", "hi")


class TestInboundValidation:
    def test_invalid_base64_rejected(self, client):
        r = client.post(INBOUND, json={"sender": "9100000001", "image_base64": "!!not-base64!!"})
        assert r.status_code == 400

    def test_oversized_image_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "max_image_bytes", 4)
        image = base64.b64encode(b"0123456789").decode()
        r = client.post(INBOUND, json={"sender": "9100000001", "image_base64": image})
        assert r.status_code == 413

    def test_sender_without_digits_rejected(self, client):
        r = client.post(INBOUND, json={"sender": "someone", "text": "hi"})
        assert r.status_code == 400

    def test_gateway_token_enforced_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "gateway_token", "s3cret")
        body = {"sender": "9100000001", "text": "help"}

        assert client.post(INBOUND, json=body).status_code == 401
        assert client.post(INBOUND, json=body, headers={"X-Gateway-Token": "wrong"}).status_code == 401
        assert client.post(INBOUND, json=body, headers={"X-Gateway-Token": "s3cret"}).status_code == 200
