import logging

from sqlalchemy.orm import Session

from chowk.models.identity import Identity, Role
from chowk.services.language_service import city_from_location
from chowk.utils.clock import now_iso

logger = logging.getLogger("chowk.identity")


class IdentityDirectory:
    def __init__(self, db: Session):
        self.db = db

    def get(self, phone: str) -> Identity | None:
        return self.db.get(Identity, phone)

    def _get_or_new(self, phone: str, role: str) -> Identity:
        identity = self.get(phone)
        if identity is None:
            now = now_iso()
            identity = Identity(
                phone_number=phone,
                role=role,
                preferred_language="en",
                is_onboarded=False,
                created_at=now,
                updated_at=now,
            )
            self.db.add(identity)
        return identity

    def register_worker(
        self,
        phone: str,
        name: str,
        skill: str,
        location: str,
        preferred_language: str = "en",
        national_id: str | None = None,
    ) -> Identity:
        """Create or re-register a worker from a completed onboarding flow."""
        identity = self._get_or_new(phone, Role.WORKER)
        identity.role = Role.WORKER
        identity.name = name
        identity.skill = skill.lower()
        identity.location = location
        identity.city = city_from_location(location)
        identity.preferred_language = preferred_language
        if national_id:
            identity.national_id = national_id
        identity.is_onboarded = True
        identity.updated_at = now_iso()
        logger.info("worker registered: %s (%s, %s)", phone, identity.skill, identity.city)
        return identity

    def ensure_contractor(self, phone: str, preferred_language: str | None = None) -> Identity:
        identity = self._get_or_new(phone, Role.CONTRACTOR)
        if identity.role != Role.CONTRACTOR:
            logger.info("identity %s re-registered as contractor", phone)
        identity.role = Role.CONTRACTOR
        identity.name = identity.name or "Contractor"
        identity.is_onboarded = True
        if preferred_language:
            identity.preferred_language = preferred_language
        identity.updated_at = now_iso()
        return identity

