"""AWS client factory functions for bucketcache."""

import os
from typing import Any

import boto3
import botocore.session


def get_s3_client(
    region: str = "us-east-1", endpoint: str = "", credentials_file: str = ""
) -> Any:
    """Get S3 client with endpoint from argument or AWS_ENDPOINT_URL env var.

    Args:
        region: AWS region
        endpoint: Optional endpoint URL (LocalStack, MinIO)
        credentials_file: Optional shared credentials file to read keys from
    """
    kwargs: dict[str, str] = {"region_name": region}
    if endpoint := endpoint or os.environ.get("AWS_ENDPOINT_URL", ""):
        kwargs["endpoint_url"] = endpoint

    if not credentials_file:
        return boto3.client("s3", **kwargs)

    core_session = botocore.session.Session()
    core_session.set_config_variable("credentials_file", credentials_file)
    session = boto3.Session(botocore_session=core_session)
    return session.client("s3", **kwargs)
