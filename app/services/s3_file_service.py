"""S3FileService provides S3-backed storage for uploaded fuel statements and reviewed outputs."""

import boto3
from botocore.exceptions import ClientError

from app.core.settings import Settings, get_settings
from app.core.utils import get_logger

logger = get_logger("apnexus.storage")


class S3FileService:
    """Service for S3 object operations: upload, download, existence check, ensure bucket."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the S3 client from settings; the bucket is checked on first write."""
        settings = settings or get_settings()
        self.s3 = boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            aws_access_key_id=settings.S3_ACCESS_KEY,
            aws_secret_access_key=settings.S3_SECRET_KEY,
        )
        self.bucket = settings.S3_BUCKET
        self._bucket_ready = False

    def ensure_bucket(self) -> None:
        """Ensure the S3 bucket exists, create if not present."""
        if self._bucket_ready:
            return
        try:
            self.s3.head_bucket(Bucket=self.bucket)
        except ClientError:
            logger.info(f"Creating bucket {self.bucket}")
            self.s3.create_bucket(Bucket=self.bucket)
        self._bucket_ready = True

    def upload_fileobj(self, key: str, data: bytes) -> None:
        """Upload bytes to S3 under the given key."""
        self.ensure_bucket()
        self.s3.put_object(Bucket=self.bucket, Key=str(key), Body=data)

    def download_fileobj(self, key: str) -> bytes:
        """Download an object from S3 by key."""
        obj = self.s3.get_object(Bucket=self.bucket, Key=str(key))
        return obj["Body"].read()

    def file_exists(self, key: str) -> bool:
        """Check if an object exists in S3 by key."""
        try:
            self.s3.head_object(Bucket=self.bucket, Key=str(key))
        except ClientError:
            return False
        else:
            return True
