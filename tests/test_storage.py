"""Tests for statement storage over S3, using a stand-in boto3 client."""

import io

import pytest
from botocore.exceptions import ClientError

from app.core.settings import Settings
from app.services import s3_file_service
from app.services.file_service import FileService
from app.services.s3_file_service import S3FileService


def not_found(operation: str) -> ClientError:
    """The error boto3 raises for a missing bucket or key."""
    return ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, operation)


class FakeS3:
    """Just enough of the S3 client for S3FileService."""

    def __init__(self) -> None:
        """Start with no buckets."""
        self.buckets: dict[str, dict[str, bytes]] = {}
        self.created: list[str] = []

    def head_bucket(self, Bucket: str) -> None:  # noqa: N803
        """Raise when the bucket is missing."""
        if Bucket not in self.buckets:
            raise not_found("HeadBucket")

    def create_bucket(self, Bucket: str) -> None:  # noqa: N803
        """Create an empty bucket."""
        self.created.append(Bucket)
        self.buckets[Bucket] = {}

    def put_object(self, Bucket: str, Key: str, Body: bytes) -> None:  # noqa: N803
        """Store an object."""
        self.buckets[Bucket][Key] = Body

    def get_object(self, Bucket: str, Key: str) -> dict:  # noqa: N803
        """Return an object with a readable body."""
        return {"Body": io.BytesIO(self.buckets[Bucket][Key])}

    def head_object(self, Bucket: str, Key: str) -> None:  # noqa: N803
        """Raise when the object is missing."""
        if Key not in self.buckets.get(Bucket, {}):
            raise not_found("HeadObject")


@pytest.fixture
def fake_s3(monkeypatch: pytest.MonkeyPatch) -> FakeS3:
    """Route boto3.client("s3", ...) to a FakeS3."""
    fake = FakeS3()
    monkeypatch.setattr(s3_file_service.boto3, "client", lambda *args, **kwargs: fake)
    return fake


def test_statement_round_trip(fake_s3: FakeS3) -> None:
    """Statements and reviewed outputs are stored under per-job keys in the configured bucket."""
    service = FileService(S3FileService(Settings(S3_BUCKET="fuel-test")))
    job_id, in_key, out_key = service.save_statement(b"Trans ID\nT1\n")
    if in_key != f"statements/{job_id}.csv" or out_key != f"statements/{job_id}_reviewed.csv":
        msg = f"Unexpected keys {in_key}, {out_key}"
        raise AssertionError(msg)
    if service.get_file(in_key) != b"Trans ID\nT1\n":
        msg = "Stored statement differs from the upload"
        raise AssertionError(msg)
    if service.file_exists(out_key):
        msg = "Output should not exist before the job writes it"
        raise AssertionError(msg)
    service.save_file(out_key, "source_transaction_id\nT1\n")
    if not service.file_exists(out_key) or service.get_file(out_key) != b"source_transaction_id\nT1\n":
        msg = "Reviewed output was not stored as UTF-8 bytes"
        raise AssertionError(msg)
    if fake_s3.created != ["fuel-test"]:
        msg = f"Bucket should be created once, got {fake_s3.created}"
        raise AssertionError(msg)
