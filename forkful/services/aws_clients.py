"""
boto3 client factory for the moderation providers and review image storage.

Every client gets a bounded connect/read timeout and no automatic retries:
a single failed or timed-out provider call is terminal for the submission.
"""

from __future__ import annotations
from typing import Any, Dict

import boto3
from botocore.config import Config as BotoConfig


def _client_kwargs(config: Dict[str, Any], region: str, **extra: Any) -> Dict[str, Any]:
    timeout = config.get("MODERATION_PROVIDER_TIMEOUT", 10)
    kwargs: Dict[str, Any] = {
        "region_name": region,
        "config": BotoConfig(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"total_max_attempts": 1},
            **extra,
        ),
    }
    # Explicit keys override the default credential chain (env, profile, IAM role)
    access_key = config.get("AWS_ACCESS_KEY_ID")
    secret_key = config.get("AWS_SECRET_ACCESS_KEY")
    if access_key and secret_key:
        kwargs["aws_access_key_id"] = access_key
        kwargs["aws_secret_access_key"] = secret_key
        kwargs["aws_session_token"] = config.get("AWS_SESSION_TOKEN") or None
    return kwargs


def create_s3_client(config: Dict[str, Any]):
    """S3 client in the primary region (review images)."""
    region = config.get("AWS_REGION", "us-east-2")
    return boto3.client("s3", **_client_kwargs(config, region, signature_version="s3v4"))


def create_rekognition_client(config: Dict[str, Any]):
    """Rekognition must share the bucket's region to read S3 objects."""
    return boto3.client("rekognition", **_client_kwargs(config, config.get("AWS_REGION", "us-east-2")))


def create_comprehend_client(config: Dict[str, Any]):
    return boto3.client("comprehend", **_client_kwargs(config, config.get("COMPREHEND_REGION", "us-east-1")))
