from urllib.parse import urlsplit

import boto3
from botocore.config import Config as BotoConfig
from flask import current_app


def _get_client():
    return boto3.client(
        "s3",
        endpoint_url=current_app.config["S3_ENDPOINT_URL"] or None,
        aws_access_key_id=current_app.config["S3_ACCESS_KEY"],
        aws_secret_access_key=current_app.config["S3_SECRET_KEY"],
        region_name=current_app.config["S3_REGION"],
        config=BotoConfig(signature_version="s3v4"),
    )


def get_public_url(storage_key):
    """Return the public CDN URL for a storage key."""
    base = current_app.config["S3_PUBLIC_URL"].rstrip("/")
    return f"{base}/{storage_key}"


def key_from_url(image_url):
    """Derive the storage key backing an image URL.

    CDN URLs lose the public base; relative paths ("/uploads/x.jpg") and
    foreign absolute URLs lose the leading slash of their path.
    """
    if not image_url:
        return ""
    base = current_app.config["S3_PUBLIC_URL"].rstrip("/")
    if base and image_url.startswith(base + "/"):
        return image_url[len(base) + 1:]
    return urlsplit(image_url).path.lstrip("/")


def delete(storage_key):
    """Delete an object from S3."""
    client = _get_client()
    bucket = current_app.config["S3_BUCKET_NAME"]
    client.delete_object(Bucket=bucket, Key=storage_key)

