"""Tests for S3StorageProvider against a mocked boto3 client."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from app.storage.s3_provider import DELETE_BATCH_SIZE, S3StorageProvider


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def provider(client):
    return S3StorageProvider(bucket="rentvault-test", region="eu-central-1", client=client)


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


class TestDeleteObjects:
    def test_reports_per_key_errors(self, provider, client):
        client.delete_objects.return_value = {
            "Deleted": [{"Key": "cases/c1/a.jpg"}],
            "Errors": [{"Key": "cases/c1/b.jpg", "Code": "AccessDenied", "Message": "Access Denied"}],
        }

        result = provider.delete_objects(["cases/c1/a.jpg", "cases/c1/b.jpg"])

        assert result.deleted == ["cases/c1/a.jpg"]
        assert result.failed == {"cases/c1/b.jpg": "Access Denied"}
        kwargs = client.delete_objects.call_args.kwargs
        assert kwargs["Bucket"] == "rentvault-test"
        assert kwargs["Delete"]["Objects"] == [{"Key": "cases/c1/a.jpg"}, {"Key": "cases/c1/b.jpg"}]

    def test_batches_of_one_thousand(self, provider, client):
        client.delete_objects.return_value = {}
        paths = [f"cases/c1/{i}.jpg" for i in range(DELETE_BATCH_SIZE + 5)]

        result = provider.delete_objects(paths)

        assert client.delete_objects.call_count == 2
        assert len(result.deleted) == len(paths)

    def test_client_error_fails_whole_batch(self, provider, client):
        client.delete_objects.side_effect = _client_error("InternalError")

        result = provider.delete_objects(["cases/c1/a.jpg", "cases/c1/b.jpg"])

        assert result.deleted == []
        assert set(result.failed) == {"cases/c1/a.jpg", "cases/c1/b.jpg"}

    def test_transport_errors_are_retried(self, provider, client):
        client.delete_objects.side_effect = [
            EndpointConnectionError(endpoint_url="https://s3.test"),
            {},
        ]

        with patch("tenacity.nap.time.sleep"):
            result = provider.delete_objects(["cases/c1/a.jpg"])

        assert client.delete_objects.call_count == 2
        assert result.deleted == ["cases/c1/a.jpg"]

    def test_empty_list_makes_no_calls(self, provider, client):
        result = provider.delete_objects([])

        assert result.ok
        client.delete_objects.assert_not_called()


class TestExistsAndUrls:
    def test_exists_false_on_404(self, provider, client):
        client.head_object.side_effect = _client_error("404")
        assert provider.exists("cases/c1/missing.jpg") is False

    def test_exists_raises_other_errors(self, provider, client):
        client.head_object.side_effect = _client_error("403")
        with pytest.raises(ClientError):
            provider.exists("cases/c1/a.jpg")

    def test_signed_url(self, provider, client):
        client.generate_presigned_url.return_value = "https://s3.test/signed"

        url = provider.create_signed_url("cases/c1/a.jpg", expires_in=120)

        assert url == "https://s3.test/signed"
        client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "rentvault-test", "Key": "cases/c1/a.jpg"},
            ExpiresIn=120,
        )

    def test_bucket_required(self):
        settings = MagicMock(S3_BUCKET=None)
        with patch("app.storage.s3_provider.get_settings", return_value=settings):
            with pytest.raises(ValueError, match="bucket"):
                S3StorageProvider(client=MagicMock())
