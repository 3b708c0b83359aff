import datetime
import json
import logging
import os
import re
import uuid

from flux.blob_storage import BlobStorageService
from flux.config import Config
from flux.utility import run_blocking

logger = logging.getLogger("flux.profile_archive")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def _safe_name(value):
    return _UNSAFE_CHARS.sub("_", value or "unknown")


class ProfileArchive:
    """Durable copy of finished profiles and feedback.

    Writes JSON documents to Azure Blob storage when a blob service is given,
    otherwise to files under ``base_dir``. Callers do not wait on it.
    """

    def __init__(self, blob_storage=None, base_dir=None):
        self._blob = blob_storage
        self._base_dir = base_dir or Config.profiles_dir

    async def store_profile(self, profile):
        name = f"profiles/{_safe_name(profile.phone)}.json"
        document = {
            "profile": profile.model_dump(mode="json"),
            "storedAt": _now_iso(),
        }
        await run_blocking(self._write, name, document)
        logger.info("[ARCHIVE] profile stored | phone=%s | crops=%s", profile.phone, list(profile.crops))

    async def store_feedback(self, profile, feedback, acknowledgment):
        name = f"feedback/{_safe_name(profile.phone)}/{_stamp()}_{uuid.uuid4().hex[:8]}.json"
        document = {
            "phone": profile.phone,
            "name": profile.name,
            "crops": list(profile.crops),
            "location": profile.location,
            "feedback": feedback,
            "acknowledgment": acknowledgment,
            "storedAt": _now_iso(),
        }
        await run_blocking(self._write, name, document)
        logger.info("[ARCHIVE] feedback stored | phone=%s", profile.phone)

    def _write(self, name, document):
        payload = json.dumps(document, ensure_ascii=True, indent=2).encode("utf-8")
        if self._blob is not None:
            return self._blob.upload_bytes(name, payload, "application/json")

        path = os.path.join(self._base_dir, *name.split("/"))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(payload)
        return path


def create_profile_archive():
    if BlobStorageService.is_configured():
        return ProfileArchive(blob_storage=BlobStorageService())
    logger.info("[ARCHIVE] Azure storage not configured, writing to %s", Config.profiles_dir)
    return ProfileArchive()


def _now_iso():
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def _stamp():
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%dT%H%M%S")
