"""
Fine-tune orchestration for custom models.

create_custom_model runs four steps strictly in order:
1. Stage the training examples as a JSONL file under TRAINING_DATA_DIR
2. Upload the file to OpenAI (purpose="fine-tune")
3. Submit a fine-tuning job for the uploaded file
4. Record the job as a CustomModel on the user document

A failure in steps 1-3 records nothing. There is no rollback: a failure after
step 2 leaves the uploaded file on the provider, and staged files are kept.

Jobs are not awaited. The recorded model starts in whatever state the
provider reports (usually queued) and is advanced by refresh_custom_model.
"""

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from openai import AsyncOpenAI

from app.core.config import settings
from app.core.errors import AuthenticationFailure, NotFound, UpstreamFailure
from app.models.user import User
from app.schemas.chat import FineTuneStatus, TrainingExample
from app.services.database import UserStore, user_store

logger = logging.getLogger("chat_relay.fine_tune")

# OpenAI job status -> local lifecycle
PROVIDER_STATUS_MAP: dict[str, FineTuneStatus] = {
    "validating_files": FineTuneStatus.QUEUED,
    "queued": FineTuneStatus.QUEUED,
    "running": FineTuneStatus.RUNNING,
    "succeeded": FineTuneStatus.SUCCEEDED,
    "failed": FineTuneStatus.FAILED,
    "cancelled": FineTuneStatus.FAILED,
}


def map_job_status(provider_status: str | None) -> FineTuneStatus:
    """Translate a provider job status; unknown values count as still queued."""
    return PROVIDER_STATUS_MAP.get(provider_status or "", FineTuneStatus.QUEUED)


def next_status(current: FineTuneStatus, reported: FineTuneStatus) -> FineTuneStatus:
    """
    Apply a reported status to the current one.

    Terminal states never change, and a job never moves back from running to queued.
    """
    if current.is_terminal:
        return current
    if current == FineTuneStatus.RUNNING and reported == FineTuneStatus.QUEUED:
        return current
    return reported


class FineTuneService:
    """
    Orchestrates custom-model fine-tuning against the OpenAI files and
    fine-tuning APIs.
    """

    def __init__(self, client: AsyncOpenAI | None, store: UserStore | None = None):
        self.client = client
        self.store = store or user_store

    async def _load_user(self, user_id: str) -> User:
        user = await self.store.find_by_id(user_id)
        if not user:
            raise AuthenticationFailure("User doesn't exist or token malfunctioned")
        return user

    def _require_client(self) -> AsyncOpenAI:
        if self.client is None:
            raise UpstreamFailure("OpenAI API key not configured")
        return self.client

    # =========================================================================
    # Steps
    # =========================================================================

    @staticmethod
    def stage_training_file(user_id: str, training_data: list[TrainingExample]) -> Path:
        """
        Write training examples as JSONL, one ``{"messages": [...]}`` record per line.

        Raises:
            UpstreamFailure: If the staging directory or file cannot be written.
        """
        directory = Path(settings.TRAINING_DATA_DIR)
        path = directory / f"{user_id}-{uuid.uuid4().hex}.jsonl"

        try:
            directory.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                for example in training_data:
                    f.write(json.dumps(example.model_dump(mode="json")) + "\n")
        except OSError as e:
            logger.error("Failed to stage training data at %s: %s", path, e)
            raise UpstreamFailure("Failed to stage training data", detail=str(e)) from e

        logger.info("Staged %d training examples at %s", len(training_data), path)
        return path

    async def upload_training_file(self, path: Path) -> str:
        """Upload a staged file and return the provider file id."""
        client = self._require_client()

        try:
            with path.open("rb") as f:
                uploaded = await client.files.create(file=f, purpose="fine-tune")
        except Exception as e:
            logger.error("Training file upload failed for %s: %s", path, e)
            raise UpstreamFailure("Failed to upload training data", detail=str(e)) from e

        logger.info("Uploaded training file %s as %s", path.name, uploaded.id)
        return uploaded.id

    async def submit_job(self, training_file_id: str) -> Any:
        """Start a fine-tuning job; returns the provider job object without waiting on it."""
        client = self._require_client()

        try:
            job = await client.fine_tuning.jobs.create(
                training_file=training_file_id,
                model=settings.FINE_TUNE_BASE_MODEL,
            )
        except Exception as e:
            logger.error("Fine-tune submission failed for file %s: %s", training_file_id, e)
            raise UpstreamFailure("Failed to start fine-tuning job", detail=str(e)) from e

        logger.info("Submitted fine-tune job %s (status=%s)", job.id, job.status)
        return job

    # =========================================================================
    # Operations
    # =========================================================================

    async def create_custom_model(
        self,
        user_id: str,
        training_data: list[TrainingExample],
        model_name: str,
    ) -> tuple[dict[str, Any], str]:
        """
        Stage, upload, submit, then record a custom model.

        Returns:
            Tuple of (custom model record, training file id).

        Raises:
            AuthenticationFailure: 401 if the user no longer exists.
            UpstreamFailure: 500 if any step fails (nothing is recorded).
            Conflict: 409 if the user document changed concurrently at record time.
        """
        await self._load_user(user_id)

        path = self.stage_training_file(user_id, training_data)
        training_file_id = await self.upload_training_file(path)
        job = await self.submit_job(training_file_id)

        now = datetime.now(UTC).isoformat()
        record = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "name": model_name,
            "job_id": job.id,
            "training_file_id": training_file_id,
            "model_id": job.fine_tuned_model,
            "status": map_job_status(job.status).value,
            "created_at": now,
            "updated_at": now,
        }

        # Re-read so the write is checked against the freshest version
        user = await self._load_user(user_id)
        user.custom_models = [*(user.custom_models or []), record]
        await self.store.save(user)

        logger.info("Recorded custom model %s (%s) for user %s", record["id"], model_name, user_id)
        return record, training_file_id

    async def list_custom_models(self, user_id: str) -> list[dict[str, Any]]:
        user = await self._load_user(user_id)
        return list(user.custom_models or [])

    async def refresh_custom_model(self, user_id: str, model_id: str) -> dict[str, Any]:
        """
        Poll the provider for a non-terminal job and store its new state.

        Raises:
            NotFound: 404 if the user has no custom model with this id.
            UpstreamFailure: 500 if the provider call or save fails.
        """
        user = await self._load_user(user_id)
        models = list(user.custom_models or [])

        index = next((i for i, m in enumerate(models) if m.get("id") == model_id), None)
        if index is None:
            raise NotFound("Custom model not found")

        record = models[index]
        current = FineTuneStatus(record.get("status", FineTuneStatus.QUEUED.value))
        if current.is_terminal:
            return record

        client = self._require_client()
        try:
            job = await client.fine_tuning.jobs.retrieve(record["job_id"])
        except Exception as e:
            logger.error("Fine-tune status poll failed for job %s: %s", record["job_id"], e)
            raise UpstreamFailure("Failed to fetch fine-tuning job", detail=str(e)) from e

        status = next_status(current, map_job_status(job.status))
        fine_tuned_model = job.fine_tuned_model or record.get("model_id")
        if status == current and fine_tuned_model == record.get("model_id"):
            return record

        updated = {
            **record,
            "status": status.value,
            "model_id": fine_tuned_model,
            "updated_at": datetime.now(UTC).isoformat(),
        }
        models[index] = updated
        user.custom_models = models
        await self.store.save(user)

        logger.info("Custom model %s moved %s -> %s", model_id, current.value, status.value)
        return updated
