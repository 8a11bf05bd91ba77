"""
Multi-step chat flows.

Two flows exist: worker onboarding and contractor job posting. Each step
is a closed enum member with exactly one handler; a handler validates the
reply, and either re-prompts (state unchanged) or stores the value and
moves on. The final step of each flow writes to the ledger and ends the
flow; the caller commits that write and the state removal together.
"""
import logging
from enum import Enum
from typing import Callable

import httpx
from pydantic import ValidationError
from sqlalchemy.orm import Session

from chowk.models.identity import Role
from chowk.models.job import Job
from chowk.services.identity_service import IdentityDirectory
from chowk.services.job_service import JobLedger
from chowk.services.language_service import SKIP_WORDS, IdCardReader, detect_language
from chowk.services.state_service import ConversationStore, FlowState
from chowk.services.templates import render

logger = logging.getLogger("chowk.conversation")

SKILL_EXAMPLES = "painter, electrician, plumber, carpenter, mason"
CANCEL_FLOW_WORDS = {"cancel", "stop", "exit", "quit"}

Step = tuple[str, FlowState | None]


class OnboardingStep(str, Enum):
    START = "START"
    AWAITING_NAME = "AWAITING_NAME"
    AWAITING_SKILL = "AWAITING_SKILL"
    AWAITING_LOCATION = "AWAITING_LOCATION"
    AWAITING_ID_IMAGE = "AWAITING_ID_IMAGE"


class JobPostingStep(str, Enum):
    START_JOB = "START_JOB"
    AWAITING_TITLE = "AWAITING_TITLE"
    AWAITING_SKILL_REQUIRED = "AWAITING_SKILL_REQUIRED"
    AWAITING_WAGE = "AWAITING_WAGE"
    AWAITING_LOCATION = "AWAITING_LOCATION"
    AWAITING_WORKERS_NEEDED = "AWAITING_WORKERS_NEEDED"


def _moved(state: FlowState, step: Enum, **values) -> FlowState:
    return FlowState(step=step.value, role=state.role, context={**state.context, **values})


class ConversationFlows:
    def __init__(
        self,
        db: Session,
        id_reader: IdCardReader | None = None,
        on_job_posted: Callable[[Job], None] | None = None,
    ):
        self.db = db
        self.store = ConversationStore(db)
        self.id_reader = id_reader or IdCardReader()
        self.on_job_posted = on_job_posted
        self._posted: list[Job] = []

        self._onboarding = {
            OnboardingStep.START: self._start_onboarding,
            OnboardingStep.AWAITING_NAME: self._take_name,
            OnboardingStep.AWAITING_SKILL: self._take_skill,
            OnboardingStep.AWAITING_LOCATION: self._take_location,
            OnboardingStep.AWAITING_ID_IMAGE: self._take_id_image,
        }
        self._job_posting = {
            JobPostingStep.START_JOB: self._start_job,
            JobPostingStep.AWAITING_TITLE: self._take_title,
            JobPostingStep.AWAITING_SKILL_REQUIRED: self._take_skill_required,
            JobPostingStep.AWAITING_WAGE: self._take_wage,
            JobPostingStep.AWAITING_LOCATION: self._take_job_location,
            JobPostingStep.AWAITING_WORKERS_NEEDED: self._take_workers_needed,
        }

    # -----------------------------------------------
    # Entry points
    # -----------------------------------------------

    def advance(self, phone: str, reply: str, state: FlowState, image: bytes | None = None) -> Step:
        """Apply one reply to a flow. Returns the prompt to send and the next
        state, or None when the flow has finished."""
        if state.role == Role.CONTRACTOR:
            steps, table = JobPostingStep, self._job_posting
        else:
            steps, table = OnboardingStep, self._onboarding
        try:
            step = steps(state.step)
        except ValueError:
            logger.warning("unknown step %r for %s, resetting flow", state.step, phone)
            return render("flow_reset", state.context.get("lang")), None
        return table[step](phone, (reply or "").strip(), state, image)

    def begin(self, phone: str, role: str, reply: str) -> str:
        """Start a fresh flow for phone, replacing any flow in progress."""
        first = JobPostingStep.START_JOB if role == Role.CONTRACTOR else OnboardingStep.START
        return self._apply(phone, reply, FlowState(step=first.value, role=role), None)

    def handle_reply(self, phone: str, reply: str, image: bytes | None = None) -> str | None:
        """Continue phone's flow, if it has one. None means no flow is active."""
        state = self.store.get(phone)
        if state is None:
            return None
        if (reply or "").strip().lower() in CANCEL_FLOW_WORDS:
            self.store.clear(phone)
            self.db.commit()
            logger.info("flow %s abandoned by %s", state.step, phone)
            return render("flow_cancelled", state.context.get("lang"))
        return self._apply(phone, reply, state, image)

    def _apply(self, phone: str, reply: str, state: FlowState, image: bytes | None) -> str:
        prompt, next_state = self.advance(phone, reply, state, image)
        if next_state is None:
            self.store.clear(phone)
        else:
            self.store.save(phone, next_state)
        self.db.commit()

        posted, self._posted = self._posted, []
        if self.on_job_posted is not None:
            for job in posted:
                self.on_job_posted(job)
        return prompt

    # -----------------------------------------------
    # Worker onboarding
    # -----------------------------------------------

    def _start_onboarding(self, phone, reply, state, image) -> Step:
        lang = detect_language(reply) if reply else "en"
        return render("welcome_ask_name", lang), _moved(state, OnboardingStep.AWAITING_NAME, lang=lang)

    def _take_name(self, phone, reply, state, image) -> Step:
        lang = state.context.get("lang")
        if len(reply) < 2:
            return render("name_invalid", lang), state
        return (
            render("ask_skill", lang, name=reply, skills=SKILL_EXAMPLES),
            _moved(state, OnboardingStep.AWAITING_SKILL, name=reply),
        )

    def _take_skill(self, phone, reply, state, image) -> Step:
        lang = state.context.get("lang")
        if len(reply) < 2:
            return render("skill_invalid", lang), state
        return render("ask_location", lang), _moved(state, OnboardingStep.AWAITING_LOCATION, skill=reply.lower())

    def _take_location(self, phone, reply, state, image) -> Step:
        lang = state.context.get("lang")
        if len(reply) < 2:
            return render("location_invalid", lang), state
        return render("ask_id_image", lang), _moved(state, OnboardingStep.AWAITING_ID_IMAGE, location=reply)

    def _take_id_image(self, phone, reply, state, image) -> Step:
        lang = state.context.get("lang")
        if image:
            try:
                card = self.id_reader.read(image)
            except (httpx.HTTPError, ValidationError, ValueError):
                logger.exception("ID card read failed for %s", phone)
                return render("id_image_failed", lang), state
            context = dict(state.context)
            if card.name and not context.get("name"):
                context["name"] = card.name
            if card.id_number:
                context["national_id"] = card.id_number
            return self._finish_onboarding(phone, FlowState(step=state.step, role=state.role, context=context))
        if reply.lower() in SKIP_WORDS:
            return self._finish_onboarding(phone, state)
        return render("id_image_reprompt", lang), state

    def _finish_onboarding(self, phone: str, state: FlowState) -> Step:
        ctx = state.context
        lang = ctx.get("lang") or "en"
        worker = IdentityDirectory(self.db).register_worker(
            phone,
            name=ctx["name"],
            skill=ctx["skill"],
            location=ctx["location"],
            preferred_language=lang,
            national_id=ctx.get("national_id"),
        )
        prompt = render(
            "registration_complete",
            lang,
            name=worker.name,
            skill=worker.skill,
            location=worker.location,
            id_status="verified" if worker.national_id else "not provided",
        )
        return prompt, None

    # -----------------------------------------------
    # Contractor job posting
    # -----------------------------------------------

    def _start_job(self, phone, reply, state, image) -> Step:
        lang = detect_language(reply) if reply else "en"
        return render("ask_title", lang), _moved(state, JobPostingStep.AWAITING_TITLE, lang=lang)

    def _take_title(self, phone, reply, state, image) -> Step:
        lang = state.context.get("lang")
        if len(reply) < 3:
            return render("title_invalid", lang), state
        return (
            render("ask_skill_required", lang, title=reply),
            _moved(state, JobPostingStep.AWAITING_SKILL_REQUIRED, title=reply),
        )

    def _take_skill_required(self, phone, reply, state, image) -> Step:
        lang = state.context.get("lang")
        if len(reply) < 2:
            return render("skill_required_invalid", lang), state
        return render("ask_wage", lang), _moved(state, JobPostingStep.AWAITING_WAGE, skill_required=reply.lower())

    def _take_wage(self, phone, reply, state, image) -> Step:
        lang = state.context.get("lang")
        if not reply:
            return render("wage_invalid", lang), state
        return render("ask_job_location", lang), _moved(state, JobPostingStep.AWAITING_LOCATION, wage=reply)

    def _take_job_location(self, phone, reply, state, image) -> Step:
        lang = state.context.get("lang")
        if len(reply) < 2:
            return render("job_location_invalid", lang), state
        return (
            render("ask_workers_needed", lang),
            _moved(state, JobPostingStep.AWAITING_WORKERS_NEEDED, location=reply),
        )

    def _take_workers_needed(self, phone, reply, state, image) -> Step:
        lang = state.context.get("lang")
        try:
            count = int(reply)
        except ValueError:
            return render("workers_needed_invalid", lang), state
        if not 1 <= count <= 100:
            return render("workers_needed_invalid", lang), state

        ctx = state.context
        IdentityDirectory(self.db).ensure_contractor(phone, lang)
        job = JobLedger(self.db).create(
            contractor_phone=phone,
            skill_required=ctx["skill_required"],
            wage=ctx["wage"],
            workers_needed=count,
            location=ctx["location"],
            title=ctx["title"],
        )
        self._posted.append(job)
        prompt = render(
            "job_posted",
            lang,
            title=job.title,
            skill=job.skill_required,
            wage=job.wage,
            location=job.location,
            workers_needed=job.workers_needed,
            job_id=job.short_id,
        )
        return prompt, None
