"""
Two-phase storage for review images: stage -> verify -> promote / discard.

Uploads land under a quarantine prefix that is never served publicly. Only
after moderation passes are they copied to the public prefix; rejected
uploads are deleted from quarantine and never become visible.
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass
from typing import List, Sequence

from botocore.exceptions import BotoCoreError, ClientError
from werkzeug.utils import secure_filename

from forkful.services.image_moderation import StoredImageRef
from forkful.utils.errors import StorageError, log_error, log_info


@dataclass(frozen=True)
class ImageUpload:
    """A validated upload waiting to be staged."""

    filename: str
    data: bytes
    content_type: str = "image/jpeg"


@dataclass(frozen=True)
class StagedImage:
    ref: StoredImageRef
    filename: str
    content_type: str


class AttachmentStore:
    """
    Args:
        s3: boto3 S3 client
        bucket: Bucket holding both quarantine and public objects
        region: Bucket region (used to build public URLs)
    """

    def __init__(self, s3, bucket: str, quarantine_prefix: str = "quarantine/",
                 public_prefix: str = "reviews/", region: str = "us-east-2"):
        self.s3 = s3
        self.bucket = bucket
        self.quarantine_prefix = quarantine_prefix
        self.public_prefix = public_prefix
        self.region = region

    def stage(self, review_id: str, uploads: Sequence[ImageUpload]) -> List[StagedImage]:
        """
        Upload files to quarantine. On failure, anything already staged for
        this call is removed before StorageError is raised.
        """
        staged: List[StagedImage] = []
        for upload in uploads:
            name = secure_filename(upload.filename) or "image"
            key = f"{self.quarantine_prefix}{review_id}/{uuid.uuid4()}-{name}"
            try:
                self.s3.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=upload.data,
                    ContentType=upload.content_type,
                )
            except (BotoCoreError, ClientError) as e:
                self._discard_quietly(staged)
                raise StorageError(f"Failed to stage {name}: {e}", cause=e) from e
            staged.append(StagedImage(StoredImageRef(self.bucket, key), upload.filename, upload.content_type))
        return staged

    def promote(self, staged: Sequence[StagedImage]) -> List[dict]:
        """
        Copy staged objects to the public prefix and remove the quarantine copies.

        If a copy fails, public copies made so far are removed before
        StorageError is raised; the caller still owns the staged objects.

        Returns:
            One dict per image with 'storage_key' and 'url', in upload order.
        """
        promoted = []
        for item in staged:
            public_key = self.public_prefix + item.ref.key[len(self.quarantine_prefix):]
            try:
                self.s3.copy_object(
                    Bucket=self.bucket,
                    Key=public_key,
                    CopySource={"Bucket": item.ref.bucket, "Key": item.ref.key},
                    ContentType=item.content_type,
                    MetadataDirective="REPLACE",
                )
            except (BotoCoreError, ClientError) as e:
                self._delete_public_quietly([p["storage_key"] for p in promoted])
                raise StorageError(f"Failed to promote {item.ref.key}: {e}", cause=e) from e
            promoted.append({"storage_key": public_key, "url": self.public_url(public_key)})

        # Quarantine copies are only removed once every image made it across;
        # leftovers there are never served, so a failed cleanup is not fatal
        self._discard_quietly(staged)
        log_info(f"Promoted {len(promoted)} review image(s)")
        return promoted

    def discard(self, staged: Sequence[StagedImage]) -> None:
        """Delete staged objects. Raises StorageError if S3 refuses."""
        if not staged:
            return
        self._delete_keys([item.ref.key for item in staged])

    def delete_public(self, storage_keys: Sequence[str]) -> None:
        """Delete already-promoted objects (review deletion)."""
        if storage_keys:
            self._delete_keys(list(storage_keys))

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def _delete_keys(self, keys: List[str]) -> None:
        try:
            response = self.s3.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to delete {len(keys)} object(s): {e}", cause=e) from e
        errors = response.get("Errors") or []
        if errors:
            raise StorageError(f"Failed to delete {len(errors)} of {len(keys)} object(s)")

    def _discard_quietly(self, staged: Sequence[StagedImage]) -> None:
        try:
            self.discard(staged)
        except StorageError as e:
            log_error(f"Could not clean up partially staged upload: {e}")

    def _delete_public_quietly(self, storage_keys: Sequence[str]) -> None:
        try:
            self.delete_public(storage_keys)
        except StorageError as e:
            log_error(f"Could not clean up partially promoted images: {e}")
