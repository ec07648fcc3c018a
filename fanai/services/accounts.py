"""
Account Collaborators
SQLAlchemy-backed credit ledger, generation job table and campaign counter.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from fanai.core.errors import InsufficientCreditsError, InvalidTransitionError, NotFoundError
from fanai.models import Campaign, Generation, User
from fanai.schemas.generation import TRANSITIONS, GenerationStatus

logger = logging.getLogger(__name__)


def new_generation_id() -> str:
    return f"gen_{uuid.uuid4().hex[:16]}"


class SqlCreditLedger:
    """Credit balance per user; one credit per generation."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get_remaining_credits(self, user_id: str) -> int:
        with self.session_factory() as db:
            user = db.get(User, user_id)
            return user.credits if user else 0

    def deduct_credits(self, user_id: str, amount: int = 1) -> int:
        """
        Atomically subtract amount from the balance.

        Raises:
            InsufficientCreditsError: balance lower than amount
        """
        with self.session_factory() as db:
            result = db.execute(
                update(User)
                .where(User.id == user_id, User.credits >= amount)
                .values(credits=User.credits - amount, updated_at=datetime.utcnow())
            )
            if result.rowcount == 0:
                db.rollback()
                user = db.get(User, user_id)
                raise InsufficientCreditsError(user_id, user.credits if user else 0)
            db.commit()
            remaining = db.get(User, user_id).credits
        logger.info(f"[Credits] Deducted {amount} from {user_id}, {remaining} left")
        return remaining

    def grant_credits(self, user_id: str, amount: int, email: Optional[str] = None) -> int:
        """Add credits, creating the user on first grant."""
        with self.session_factory() as db:
            user = db.get(User, user_id)
            if user is None:
                user = User(id=user_id, email=email, credits=0)
                db.add(user)
            user.credits += amount
            db.commit()
            logger.info(f"[Credits] Granted {amount} to {user_id}, {user.credits} total")
            return user.credits


class SqlJobStatusSink:
    """Generation rows, with status changes restricted to the job state machine."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_job(
        self,
        user_id: str,
        celebrity_slug: str,
        template_slug: str,
        campaign_id: Optional[str] = None,
        source_image_url: Optional[str] = None,
    ) -> str:
        job_id = new_generation_id()
        with self.session_factory() as db:
            db.add(Generation(
                id=job_id,
                user_id=user_id,
                celebrity_slug=celebrity_slug,
                template_slug=template_slug,
                campaign_id=campaign_id,
                source_image_url=source_image_url,
                status=GenerationStatus.PENDING.value,
            ))
            db.commit()
        logger.info(f"[Job] Created {job_id} for user {user_id}")
        return job_id

    def update_job_status(self, job_id: str, status: GenerationStatus, **fields):
        """
        Move a job to status.

        Only result_image_url (on completed) and error_message are written
        alongside the status.

        Raises:
            NotFoundError: unknown job
            InvalidTransitionError: status change not allowed from the current state
        """
        status = GenerationStatus(status)
        with self.session_factory() as db:
            job = db.get(Generation, job_id)
            if job is None:
                raise NotFoundError(f"Generation not found: {job_id}")

            current = GenerationStatus(job.status)
            if status not in TRANSITIONS[current]:
                raise InvalidTransitionError(
                    f"Cannot move {job_id} from {current.value} to {status.value}",
                    {"job_id": job_id, "from": current.value, "to": status.value},
                )

            job.status = status.value
            if status is GenerationStatus.COMPLETED and "result_image_url" in fields:
                job.result_image_url = fields["result_image_url"]
            if "error_message" in fields:
                job.error_message = fields["error_message"]
            db.commit()
        logger.info(f"[Job] {job_id}: {current.value} -> {status.value}")

    def get_job(self, job_id: str) -> Optional[Generation]:
        with self.session_factory() as db:
            job = db.get(Generation, job_id)
            if job is not None:
                db.expunge(job)
            return job

    def list_jobs(self, user_id: str, limit: int = 50) -> List[Generation]:
        """Most recent first."""
        with self.session_factory() as db:
            jobs = (
                db.query(Generation)
                .filter(Generation.user_id == user_id)
                .order_by(Generation.created_at.desc())
                .limit(limit)
                .all()
            )
            db.expunge_all()
            return jobs


class SqlCampaignCounter:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def increment_campaign_generation_count(self, campaign_id: str):
        """Bump total_generations, creating the campaign row on first use."""
        with self.session_factory() as db:
            result = db.execute(
                update(Campaign)
                .where(Campaign.id == campaign_id)
                .values(total_generations=Campaign.total_generations + 1)
            )
            if result.rowcount == 0:
                db.add(Campaign(id=campaign_id, total_generations=1))
            db.commit()
