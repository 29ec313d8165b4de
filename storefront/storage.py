import logging
import time
from typing import Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


def key_from_url(url: Optional[str]) -> str:
    """Return the object key of a stored public URL (its last path segment)."""
    return str(url or "").rstrip().split("/")[-1]


class S3BlobStore:
    """Uploads and removes image objects in a single public S3 bucket."""

    def __init__(self, client, bucket: str, region: str, clock: Callable[[], float] = time.time):
        self._client = client
        self.bucket = bucket
        self.region = region
        self._clock = clock

    @classmethod
    def from_config(cls, config) -> "S3BlobStore":
        client = boto3.client(
            "s3",
            aws_access_key_id=config["AWS_ACCESS_KEY"],
            aws_secret_access_key=config["AWS_SECRET_KEY"],
            region_name=config["AWS_REGION"],
        )
        return cls(client, config["AWS_BUCKET"], config["AWS_REGION"])

    def build_key(self, subtype: str) -> str:
        # Millisecond timestamps can collide for simultaneous uploads of one subtype.
        return f"{int(self._clock() * 1000)}.{subtype}"

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def upload(self, data: bytes, subtype: str) -> str:
        key = self.build_key(subtype)
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=f"image/{subtype}",
            ACL="public-read",
        )
        return self.public_url(key)

    def delete(self, key: str) -> bool:
        """Remove an object, logging instead of raising when S3 refuses."""
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("S3 delete failed for %s: %s", key, exc)
            return False
        return True

    def close(self) -> None:
        self._client.close()
