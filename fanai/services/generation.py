"""
Generation Orchestrator
Accepts a photo, charges a credit, and runs synthesis -> post-processing ->
artifact storage in the background.

Job lifecycle: pending -> processing -> completed | failed
No automatic retries; a failed job keeps its deducted credit.
"""

import asyncio
import io
import logging
import uuid
from typing import Optional

from PIL import Image, UnidentifiedImageError

from fanai.core.errors import (
    InsufficientCreditsError,
    NotFoundError,
    StorageFallbackUsed,
    ValidationError,
)
from fanai.core.resilience import guarded
from fanai.schemas.generation import GenerationStatus
from fanai.schemas.reference import Celebrity, Template
from fanai.services.accounts import SqlCampaignCounter, SqlCreditLedger, SqlJobStatusSink
from fanai.services.artifact_store import ArtifactStore
from fanai.services.gemini_image import GeminiImageService
from fanai.services.postprocess import process_generated_image
from fanai.services.reference_data import ReferenceDataService, celebrity_image_url
from fanai.services.storage import StorageService
from fanai.services.synthesis import SynthesisEngine
from fanai.workers.runner import BackgroundRunner

logger = logging.getLogger(__name__)

ALLOWED_FORMATS = {"JPEG": "jpg", "PNG": "png"}


class GenerationOrchestrator:
    """Entry point of the generation pipeline."""

    def __init__(
        self,
        credits: SqlCreditLedger,
        jobs: SqlJobStatusSink,
        campaigns: SqlCampaignCounter,
        reference: ReferenceDataService,
        storage: StorageService,
        gemini: GeminiImageService,
        synthesis: SynthesisEngine,
        artifacts: ArtifactStore,
        runner: BackgroundRunner,
        max_upload_bytes: int = 10 * 1024 * 1024,
        job_timeout: float = 300,
        trim_threshold: int = 10,
        watermark_text: str = "FanAI",
    ):
        self.credits = credits
        self.jobs = jobs
        self.campaigns = campaigns
        self.reference = reference
        self.storage = storage
        self.gemini = gemini
        self.synthesis = synthesis
        self.artifacts = artifacts
        self.runner = runner
        self.max_upload_bytes = max_upload_bytes
        self.job_timeout = job_timeout
        self.trim_threshold = trim_threshold
        self.watermark_text = watermark_text

    # ===== Submission =====

    def _check_image(self, image_bytes: bytes) -> str:
        """Return the file extension for a decodable JPEG/PNG upload."""
        if not image_bytes:
            raise ValidationError("Photo upload required")
        if len(image_bytes) > self.max_upload_bytes:
            raise ValidationError(
                f"Photo exceeds {self.max_upload_bytes // (1024 * 1024)}MB limit",
                {"size": len(image_bytes)},
            )
        try:
            with Image.open(io.BytesIO(image_bytes)) as image:
                image_format = image.format
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ValidationError(f"Could not decode image: {e}")
        if image_format not in ALLOWED_FORMATS:
            raise ValidationError("Only JPEG and PNG images are supported", {"format": image_format})
        return ALLOWED_FORMATS[image_format]

    async def submit_generation(
        self,
        user_id: str,
        image_bytes: bytes,
        celebrity_slug: str,
        template_slug: str,
        campaign_id: Optional[str] = None,
    ) -> str:
        """
        Validate and accept a generation request.

        Returns:
            The job id; the pipeline continues in the background.

        Raises:
            InsufficientCreditsError: no credit left (nothing is recorded)
            NotFoundError: unknown celebrity or template
            ValidationError: unusable photo
        """
        remaining = self.credits.get_remaining_credits(user_id)
        if remaining < 1:
            raise InsufficientCreditsError(user_id, remaining)

        celebrity = await self.reference.get_celebrity_by_slug(celebrity_slug)
        template = await self.reference.get_template_by_slug(template_slug)
        if celebrity is None or template is None:
            raise NotFoundError(
                "Celebrity or template not found",
                {"celebritySlug": celebrity_slug, "templateSlug": template_slug},
            )

        extension = self._check_image(image_bytes)
        upload_name = f"{uuid.uuid4().hex}.{extension}"
        upload_path = await self.storage.upload_bytes(image_bytes, upload_name)

        analysis = await self.gemini.analyze_image(str(upload_path))
        if not analysis.is_valid:
            await self.storage.delete_file(upload_name)
            raise ValidationError(analysis.reason or "Invalid image")

        self.credits.deduct_credits(user_id, 1)
        try:
            job_id = self.jobs.create_job(
                user_id=user_id,
                celebrity_slug=celebrity_slug,
                template_slug=template_slug,
                campaign_id=campaign_id,
                source_image_url=self.storage.get_public_url(upload_name),
            )
        except Exception:
            self.credits.grant_credits(user_id, 1)
            raise

        if campaign_id:
            await guarded(
                "campaign.increment",
                lambda: asyncio.to_thread(self.campaigns.increment_campaign_generation_count, campaign_id),
            )

        self.runner.spawn(
            self.run_generation(job_id, user_id, str(upload_path), celebrity, template),
            name=f"generation-{job_id}",
        )
        return job_id

    # ===== Background pipeline =====

    async def run_generation(
        self,
        job_id: str,
        user_id: str,
        upload_path: str,
        celebrity: Celebrity,
        template: Template,
    ):
        """Drive one job to a terminal state."""
        try:
            self.jobs.update_job_status(job_id, GenerationStatus.PROCESSING)
            result_url = await asyncio.wait_for(
                self._pipeline(job_id, user_id, upload_path, celebrity, template),
                timeout=self.job_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"[Job] {job_id} timed out after {self.job_timeout}s")
            self.jobs.update_job_status(
                job_id,
                GenerationStatus.FAILED,
                error_message=f"Generation timed out after {self.job_timeout:g} seconds",
            )
            return
        except Exception as e:
            logger.error(f"[Job] {job_id} failed: {e}")
            self.jobs.update_job_status(
                job_id, GenerationStatus.FAILED, error_message=str(e) or "Generation failed"
            )
            return

        self.jobs.update_job_status(job_id, GenerationStatus.COMPLETED, result_image_url=result_url)
        logger.info(f"[Job] {job_id} completed: {result_url}")

    async def _pipeline(
        self,
        job_id: str,
        user_id: str,
        upload_path: str,
        celebrity: Celebrity,
        template: Template,
    ) -> str:
        prompt = template.render_prompt(celebrity.name)
        celeb_path = await self._materialize_celebrity_image(celebrity)

        generated_path = self.storage.path_for(f"generated/{job_id}.png")
        processed_name = f"processed/{job_id}.png"
        processed_path = self.storage.path_for(processed_name)

        await self.synthesis.synthesize(upload_path, str(celeb_path), prompt, str(generated_path))
        await process_generated_image(
            str(generated_path), str(processed_path), self.trim_threshold, self.watermark_text
        )

        local_url = self.storage.get_public_url(processed_name)

        def on_storage_failure(error: Exception) -> str:
            logger.warning(f"[Job] {StorageFallbackUsed(f'{job_id}: {error}')!r}; serving {local_url}")
            return local_url

        async def store() -> str:
            stored = await self.artifacts.store_artifact(
                user_id,
                job_id,
                processed_path.read_bytes(),
                template_slug=template.slug,
                celebrity_slug=celebrity.slug,
            )
            return stored.url

        return await guarded("artifacts.store", store, on_storage_failure)

    async def _materialize_celebrity_image(self, celebrity: Celebrity):
        """Write the celebrity image to celebs/{slug}.jpg and return the local path."""
        name = f"celebs/{celebrity.slug}.jpg"
        if not celebrity.image or celebrity.image == celebrity_image_url(celebrity.slug):
            data = await self.reference.get_celebrity_image(celebrity.slug)
        else:
            data = await self.storage.download_bytes(celebrity.image)
        return await self.storage.upload_bytes(data, name)

    # ===== Reads =====

    async def fetch_artifact(self, user_id: str, artifact_id: str) -> bytes:
        return await self.artifacts.fetch_artifact(user_id, artifact_id)
