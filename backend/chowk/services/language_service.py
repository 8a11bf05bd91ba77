"""
Narrow contract with the language-understanding side of the system.

The intent classifier only picks a route for a message; it never produces
a value that is persisted without a step validator checking it first.
"""
import base64
import logging
import re

import httpx
from pydantic import BaseModel

from chowk.config import settings

logger = logging.getLogger("chowk.language")


class Intent:
    GREETING = "greeting"
    POST_JOB = "post_job"
    ACCEPT_JOB = "accept_job"
    VERIFY_OTP = "verify_otp"
    CANCEL = "cancel"
    LIST_JOBS = "list_jobs"
    JOB_DETAILS = "job_details"
    HELP = "help"
    UNKNOWN = "unknown"


class IntentResult(BaseModel):
    intent: str
    job_ref: str | None = None
    code: str | None = None
    worker_phone: str | None = None


GREETING_WORDS = {"hi", "hello", "hey", "hii", "namaste", "namaskar", "register", "start", "नमस्ते"}
ACCEPT_WORDS = {"yes", "y", "haan", "han", "ha", "accept", "ok", "okay", "हाँ", "हां"}
CANCEL_WORDS = {"cancel", "radd", "रद्द"}
POST_JOB_PHRASES = ("post job", "post a job", "job post", "hire", "need workers", "need worker")
JOB_WORDS = {"job", "jobs", "kaam", "work", "काम"}
SKIP_WORDS = {"skip", "no"}

_OTP_RE = re.compile(r"^\d{6}$")
_JOB_REF_RE = re.compile(r"^[0-9a-f-]{4,36}$")
_DEVANAGARI = re.compile(r"[ऀ-ॿ]")
_BENGALI = re.compile(r"[ঀ-৿]")


def classify(text: str) -> IntentResult:
    cleaned = text.strip()
    lowered = cleaned.lower()
    tokens = lowered.split()
    if not tokens:
        return IntentResult(intent=Intent.UNKNOWN)

    first = tokens[0].strip("!.,")
    if _OTP_RE.match(cleaned):
        return IntentResult(intent=Intent.VERIFY_OTP, code=cleaned)
    if first in ACCEPT_WORDS:
        return IntentResult(
            intent=Intent.ACCEPT_JOB,
            job_ref=tokens[1] if len(tokens) > 1 else None,
        )
    if first in CANCEL_WORDS:
        return IntentResult(
            intent=Intent.CANCEL,
            job_ref=tokens[1] if len(tokens) > 1 else None,
            worker_phone=tokens[2] if len(tokens) > 2 else None,
        )
    if any(phrase in lowered for phrase in POST_JOB_PHRASES):
        return IntentResult(intent=Intent.POST_JOB)
    if first in JOB_WORDS:
        if len(tokens) > 1 and _JOB_REF_RE.match(tokens[1]):
            return IntentResult(intent=Intent.JOB_DETAILS, job_ref=tokens[1])
        return IntentResult(intent=Intent.LIST_JOBS)
    if first in GREETING_WORDS:
        return IntentResult(intent=Intent.GREETING)
    if first == "help":
        return IntentResult(intent=Intent.HELP)
    return IntentResult(intent=Intent.UNKNOWN)


def detect_language(text: str) -> str:
    if _DEVANAGARI.search(text):
        return "hi"
    if _BENGALI.search(text):
        return "bn"
    return "en"


CITY_ALIASES = {
    "bengalore": "Bangalore", "bengaluru": "Bangalore", "blr": "Bangalore", "banglore": "Bangalore",
    "bombay": "Mumbai",
    "new delhi": "Delhi", "dilli": "Delhi",
    "calcutta": "Kolkata", "kolkatta": "Kolkata",
    "madras": "Chennai",
    "hydrabad": "Hyderabad",
    "poona": "Pune",
    "amdavad": "Ahmedabad",
    "jaypur": "Jaipur",
    "lakhnau": "Lucknow",
    "noyda": "Noida",
    "gurgaon": "Gurugram",
    "vizag": "Visakhapatnam",
    "mysore": "Mysuru",
    "mangalore": "Mangaluru",
    "trivandrum": "Thiruvananthapuram",
}


def normalize_city(city: str) -> str:
    lowered = city.strip().lower()
    if lowered in CITY_ALIASES:
        return CITY_ALIASES[lowered]
    return " ".join(word.capitalize() for word in lowered.split())


def city_from_location(location: str | None) -> str | None:
    """City guess for a free-text location: its first comma-separated segment."""
    if not location:
        return None
    segment = location.split(",")[0].strip()
    return normalize_city(segment) if segment else None


# -----------------------------------------------
# ID card OCR
# -----------------------------------------------

class IdCardResult(BaseModel):
    name: str | None = None
    id_number: str | None = None


class IdCardReader:
    """Reader used when no OCR service is configured: extracts nothing."""

    def read(self, image: bytes) -> IdCardResult:
        return IdCardResult()


class HttpIdCardReader(IdCardReader):
    def __init__(self, url: str, timeout: float = 30.0, transport=None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    def read(self, image: bytes) -> IdCardResult:
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.post(
                self.url,
                json={"image_base64": base64.b64encode(image).decode("ascii")},
            )
        response.raise_for_status()
        data = response.json()
        logger.info("ID card parsed: has_name=%s has_id=%s", bool(data.get("name")), bool(data.get("idNumber")))
        return IdCardResult(name=data.get("name") or None, id_number=data.get("idNumber") or None)


def get_id_card_reader() -> IdCardReader:
    if settings.ocr_url:
        return HttpIdCardReader(settings.ocr_url)
    return IdCardReader()
