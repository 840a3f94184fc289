# backup_worker/storage.py
from datetime import timezone
from typing import Iterable, Iterator, List, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import DeleteFailed, ListFailed, UploadFailed
from .logger import get_logger
from .models import StoredObject

logger = get_logger(__name__)

# DeleteObjects accepts at most 1000 keys per request
MAX_DELETE_BATCH = 1000


class S3Storage:
    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.s3_client = client or boto3.client(
            's3',
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=Config(signature_version='s3v4')
        )

    @classmethod
    def from_settings(cls, settings) -> "S3Storage":
        return cls(
            bucket=settings.bucket,
            endpoint_url=settings.endpoint,
            region=settings.region,
            access_key=settings.access_key,
            secret_key=settings.secret_key,
        )

    def put_object(self, key: str, body: bytes) -> None:
        try:
            self.s3_client.put_object(Bucket=self.bucket, Key=key, Body=body)
        except (ClientError, BotoCoreError) as e:
            raise UploadFailed(f"Failed to upload {key} to bucket {self.bucket}: {e}") from e

    def list_objects(self) -> Iterator[StoredObject]:
        """Yield every object in the bucket, following continuation tokens until exhausted."""
        paginator = self.s3_client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket):
                for obj in page.get("Contents", []):
                    last_modified = obj["LastModified"]
                    if last_modified.tzinfo is None:
                        last_modified = last_modified.replace(tzinfo=timezone.utc)
                    yield StoredObject(key=obj["Key"], last_modified=last_modified, size=obj.get("Size", 0))
        except (ClientError, BotoCoreError) as e:
            raise ListFailed(f"Failed to list objects in bucket {self.bucket}: {e}") from e

    def delete_objects(self, keys: Iterable[str]) -> List[str]:
        """
        Delete keys in batches. Returns the keys S3 confirmed as deleted; on
        failure, DeleteFailed.deleted holds the keys confirmed so far.
        """
        keys = list(keys)
        deleted: List[str] = []
        for start in range(0, len(keys), MAX_DELETE_BATCH):
            batch = keys[start:start + MAX_DELETE_BATCH]
            try:
                response = self.s3_client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": False},
                )
            except (ClientError, BotoCoreError) as e:
                raise DeleteFailed(
                    f"Failed to delete objects from bucket {self.bucket}: {e}", deleted=deleted
                ) from e

            errors = response.get("Errors", [])
            deleted.extend(obj["Key"] for obj in response.get("Deleted", []))
            if errors:
                failed = [f"{err.get('Key')} ({err.get('Code')})" for err in errors]
                raise DeleteFailed(
                    f"Failed to delete {len(errors)} object(s) from bucket {self.bucket}: {', '.join(failed)}",
                    deleted=deleted,
                )
        return deleted
