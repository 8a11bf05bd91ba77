from datetime import date, timedelta

import httpx
import pytest

from chowk.models.identity import Identity, Role
from chowk.models.job import Job, JobStatus
from chowk.services.conversation_service import ConversationFlows, JobPostingStep, OnboardingStep
from chowk.services.language_service import IdCardReader, IdCardResult
from chowk.services.state_service import ConversationStore, FlowState

WORKER = "919100000001"
CONTRACTOR = "919200000001"


class StubReader(IdCardReader):
    def __init__(self, result=None, error=None):
        self.result = result or IdCardResult()
        self.error = error

    def read(self, image):
        if self.error:
            raise self.error
        return self.result


class TestOnboarding:
    def _onboard(self, flows, phone, replies):
        prompts = [flows.begin(phone, Role.WORKER, "hi")]
        for reply in replies:
            prompts.append(flows.handle_reply(phone, reply))
        return prompts

    def test_full_onboarding_registers_worker(self, db):
        flows = ConversationFlows(db)
        prompts = self._onboard(flows, WORKER, ["Ramesh Kumar", "Painter", "Noida, Sector 62", "skip"])

        assert "What is your name?" in prompts[0]
        assert "Ramesh Kumar" in prompts[1]
        assert "Registration complete" in prompts[-1]
        worker = db.get(Identity, WORKER)
        assert worker.role == Role.WORKER
        assert worker.is_onboarded is True
        assert worker.skill == "painter"
        assert worker.location == "Noida, Sector 62"
        assert worker.city == "Noida"
        assert worker.national_id is None
        assert ConversationStore(db).get(WORKER) is None

    def test_same_replies_give_same_outcome(self, db):
        flows = ConversationFlows(db)
        replies = ["Sita Devi", "Electrician", "Pune, Kothrud", "no"]
        first = self._onboard(flows, "919100000011", replies)
        second = self._onboard(flows, "919100000012", replies)

        assert first == second
        a, b = db.get(Identity, "919100000011"), db.get(Identity, "919100000012")
        assert (a.name, a.skill, a.city, a.location) == (b.name, b.skill, b.city, b.location)

    def test_short_name_reprompts_without_moving(self, db):
        flows = ConversationFlows(db)
        flows.begin(WORKER, Role.WORKER, "hi")
        reply = flows.handle_reply(WORKER, "R")

        assert "valid name" in reply
        state = ConversationStore(db).get(WORKER)
        assert state.step == OnboardingStep.AWAITING_NAME.value
        assert "name" not in state.context

    def test_short_location_reprompts(self, db):
        flows = ConversationFlows(db)
        self._onboard(flows, WORKER, ["Ramesh", "mason"])
        reply = flows.handle_reply(WORKER, "x")
        assert "valid location" in reply
        assert ConversationStore(db).get(WORKER).step == OnboardingStep.AWAITING_LOCATION.value

    def test_hindi_greeting_sets_language(self, db):
        flows = ConversationFlows(db)
        prompt = flows.begin(WORKER, Role.WORKER, "नमस्ते")
        assert "चौक" in prompt
        assert ConversationStore(db).get(WORKER).context["lang"] == "hi"

    def test_id_image_sets_national_id(self, db):
        reader = StubReader(IdCardResult(name="Ramesh K", id_number="1234 5678 9012"))
        flows = ConversationFlows(db, id_reader=reader)
        self._onboard(flows, WORKER, ["Ramesh Kumar", "painter", "Noida"])
        reply = flows.handle_reply(WORKER, "", image=b"\xff\xd8fake-jpeg")

        assert "Registration complete" in reply
        worker = db.get(Identity, WORKER)
        assert worker.national_id == "1234 5678 9012"
        # A name typed during onboarding is kept over the one read from the card.
        assert worker.name == "Ramesh Kumar"

    def test_id_reader_failure_reprompts(self, db):
        reader = StubReader(error=httpx.ConnectError("ocr down"))
        flows = ConversationFlows(db, id_reader=reader)
        self._onboard(flows, WORKER, ["Ramesh Kumar", "painter", "Noida"])
        reply = flows.handle_reply(WORKER, "", image=b"img")

        assert "try again" in reply
        assert ConversationStore(db).get(WORKER).step == OnboardingStep.AWAITING_ID_IMAGE.value
        assert db.get(Identity, WORKER) is None

    def test_text_at_id_step_reprompts(self, db):
        flows = ConversationFlows(db)
        self._onboard(flows, WORKER, ["Ramesh Kumar", "painter", "Noida"])
        reply = flows.handle_reply(WORKER, "what?")
        assert "photo of your ID card" in reply
        assert ConversationStore(db).get(WORKER).step == OnboardingStep.AWAITING_ID_IMAGE.value

    def test_cancel_abandons_flow(self, db):
        flows = ConversationFlows(db)
        self._onboard(flows, WORKER, ["Ramesh Kumar"])
        reply = flows.handle_reply(WORKER, "cancel")

        assert "cancelled" in reply
        assert ConversationStore(db).get(WORKER) is None
        assert db.get(Identity, WORKER) is None

    def test_unknown_step_resets_flow(self, db):
        store = ConversationStore(db)
        store.save(WORKER, FlowState(step="AWAITING_SHOE_SIZE", role=Role.WORKER))
        db.commit()

        reply = ConversationFlows(db).handle_reply(WORKER, "42")
        assert "start over" in reply
        assert store.get(WORKER) is None

    def test_no_flow_returns_none(self, db):
        assert ConversationFlows(db).handle_reply(WORKER, "hello") is None


class TestJobPosting:
    def _post(self, flows, replies):
        prompts = [flows.begin(CONTRACTOR, Role.CONTRACTOR, "post job")]
        for reply in replies:
            prompts.append(flows.handle_reply(CONTRACTOR, reply))
        return prompts

    def test_full_posting_creates_open_job(self, db):
        posted = []
        flows = ConversationFlows(db, on_job_posted=posted.append)
        prompts = self._post(flows, ["House Painting", "Painter", "800/day", "Noida, Sector 18", "3"])

        assert "Job posted" in prompts[-1]
        assert len(posted) == 1
        job = db.get(Job, posted[0].id)
        assert job.status == JobStatus.OPEN
        assert job.skill_required == "painter"
        assert job.workers_needed == 3
        assert job.workers_remaining == 3
        assert job.city == "Noida"
        assert job.meeting_point == "Noida, Sector 18"
        assert job.start_date == (date.today() + timedelta(days=1)).isoformat()
        assert job.end_date == job.start_date
        assert job.short_id in prompts[-1]
        assert db.get(Identity, CONTRACTOR).role == Role.CONTRACTOR
        assert ConversationStore(db).get(CONTRACTOR) is None

    @pytest.mark.parametrize("reply", ["abc", "0", "101", "2.5"])
    def test_workers_needed_out_of_range_reprompts(self, db, reply):
        flows = ConversationFlows(db)
        self._post(flows, ["House Painting", "painter", "800", "Noida"])
        prompt = flows.handle_reply(CONTRACTOR, reply)

        assert "1-100" in prompt
        assert ConversationStore(db).get(CONTRACTOR).step == JobPostingStep.AWAITING_WORKERS_NEEDED.value
        assert db.query(Job).count() == 0

    def test_short_title_reprompts(self, db):
        flows = ConversationFlows(db)
        self._post(flows, [])
        prompt = flows.handle_reply(CONTRACTOR, "ab")
        assert "valid job title" in prompt
        assert ConversationStore(db).get(CONTRACTOR).step == JobPostingStep.AWAITING_TITLE.value

    def test_context_carries_earlier_answers(self, db):
        flows = ConversationFlows(db)
        self._post(flows, ["Wiring work", "Electrician", "650"])
        state = ConversationStore(db).get(CONTRACTOR)
        assert state.step == JobPostingStep.AWAITING_LOCATION.value
        assert state.context["title"] == "Wiring work"
        assert state.context["skill_required"] == "electrician"
        assert state.context["wage"] == "650"
