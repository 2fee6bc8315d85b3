from urllib.parse import urlparse

from skillcourses.core.config import settings
from skillcourses.services.storage import download_url_for, object_key_from_ref


def test_object_key_from_ref():
    assert object_key_from_ref("projects/a.zip") == "projects/a.zip"
    assert object_key_from_ref("/projects/a.zip") == "projects/a.zip"
    assert object_key_from_ref(f"s3://{settings.s3_bucket}/projects/a.zip") == "projects/a.zip"
    assert object_key_from_ref("s3://other-bucket/projects/a.zip") is None
    assert object_key_from_ref("ftp://host/a.zip") is None
    assert object_key_from_ref("") is None


def test_external_links_are_passed_through():
    assert download_url_for("https://files.example/p.zip") == "https://files.example/p.zip"
    assert download_url_for("ftp://host/a.zip") is None


def test_object_keys_are_presigned():
    url = download_url_for("projects/a.zip")
    parsed = urlparse(url)
    assert parsed.path.endswith("/projects/a.zip")
    assert "X-Amz-Signature" in parsed.query
