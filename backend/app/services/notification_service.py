"""
Notification Service - tells owners and clinic staff about pet lifecycle events.

Emails are sent in the background so a slow or failing mail server never
blocks or fails the request that triggered the event.
"""

import asyncio
from typing import Coroutine, Iterable, Set

from app.core.logging_config import logger
from app.models.user import User, ClinicStaff
from app.models.clinic import Clinic
from app.models.pet import Pet
from app.models.certificate import Certificate
from app.services.email_service import email_service


def display_name(user: User) -> str:
    if isinstance(user, ClinicStaff) and user.full_name:
        return user.full_name
    return user.username


class NotificationService:

    def __init__(self):
        self._pending: Set[asyncio.Task] = set()

    def _dispatch(self, event: str, coro: Coroutine) -> None:
        async def runner():
            try:
                delivered = await coro
                if not delivered:
                    logger.debug(f"[Notify] {event} not delivered (email disabled or failed)")
            except Exception as e:
                logger.warning(f"[Notify] {event} failed: {e}")

        task = asyncio.create_task(runner())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _notify_many(self, event: str, recipients: Iterable[User], subject: str,
                     message: str, link_path: str) -> None:
        for user in recipients:
            self._dispatch(
                event,
                email_service.send_notification(user.email, display_name(user), subject, message, link_path),
            )

    async def drain(self) -> None:
        """Wait for in-flight notifications (shutdown and tests)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ==========================================
    # Pet lifecycle
    # ==========================================

    def pet_activation_requested(self, pet: Pet, clinic: Clinic, staff: Iterable[User]) -> None:
        logger.info(f"[Notify] Activation of pet {pet.id} requested at clinic {clinic.id}")
        self._notify_many(
            "pet_activation_requested",
            staff,
            "New pet awaiting activation",
            f"{pet.owner.username} asked {clinic.name} to activate their pet {pet.name}.",
            "/clinic/pets/pending",
        )

    def pet_activated(self, pet: Pet, vet: User) -> None:
        logger.info(f"[Notify] Pet {pet.id} activated by vet {vet.id}")
        self._notify_many(
            "pet_activated",
            [pet.owner],
            "Your pet is now active",
            f"{display_name(vet)} activated {pet.name}. Medical records can now be kept by your vet.",
            f"/pets/{pet.id}",
        )

    def certificate_requested(self, pet: Pet, clinic: Clinic, vets: Iterable[User]) -> None:
        logger.info(f"[Notify] Certificate for pet {pet.id} requested at clinic {clinic.id}")
        self._notify_many(
            "certificate_requested",
            vets,
            "Health certificate requested",
            f"{pet.owner.username} requested a health certificate for {pet.name} at {clinic.name}.",
            f"/clinic/{clinic.id}/certificate-requests",
        )

    def certificate_generated(self, certificate: Certificate) -> None:
        pet = certificate.pet
        logger.info(f"[Notify] Certificate {certificate.certificate_number} issued for pet {pet.id}")
        self._notify_many(
            "certificate_generated",
            [pet.owner],
            "Health certificate issued",
            f"Certificate {certificate.certificate_number} was issued for {pet.name} "
            f"by {certificate.issuing_clinic.name}.",
            f"/pets/{pet.id}/certificates",
        )

    # ==========================================
    # Signing keys
    # ==========================================

    def clinic_keys_changed(self, clinic: Clinic, admin: User) -> None:
        logger.info(f"[Notify] Signing keys of clinic {clinic.id} changed by {admin.id}")
        self._dispatch(
            "clinic_keys_changed",
            email_service.send_clinic_keys_changed_notification(admin.email, display_name(admin), clinic.name),
        )

    def vet_keys_changed(self, vet: User) -> None:
        logger.info(f"[Notify] Signing keys of vet {vet.id} changed")
        self._dispatch(
            "vet_keys_changed",
            email_service.send_vet_keys_changed_notification(vet.email, display_name(vet)),
        )


# Singleton instance
notification_service = NotificationService()
