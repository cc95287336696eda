import unittest
from unittest.mock import patch

from botocore.exceptions import ClientError

from menuboard.errors import ExternalServiceError
from menuboard.storage import InlineMediaStore, S3MediaStore


def _store(**overrides):
    options = {
        "bucket": "menus",
        "region": "ap-south-1",
        "endpoint": "",
        "access_key_id": "key",
        "secret_access_key": "secret",
    }
    options.update(overrides)
    return S3MediaStore(**options)


@patch("menuboard.storage.boto3.client")
class S3MediaStoreTests(unittest.TestCase):
    def test_public_url(self, mock_client):
        self.assertEqual(
            _store(public_base_url="https://cdn.example.test/").public_url("menus/a.png"),
            "https://cdn.example.test/menus/a.png",
        )
        self.assertEqual(
            _store(endpoint="https://cos.ap-mumbai.myqcloud.com").public_url("a.png"),
            "https://menus.cos.ap-mumbai.myqcloud.com/a.png",
        )
        self.assertEqual(
            _store().public_url("a.png"),
            "https://menus.s3.ap-south-1.amazonaws.com/a.png",
        )
        self.assertEqual(
            _store(region="").public_url("a.png"),
            "https://menus.s3.us-east-1.amazonaws.com/a.png",
        )

    def test_upload_image(self, mock_client):
        store = _store()
        stored = store.upload_image(b"img", "image/png", "menus/a.png")
        self.assertFalse(stored.inline)
        self.assertEqual(stored.url, "https://menus.s3.ap-south-1.amazonaws.com/menus/a.png")
        mock_client.return_value.put_object.assert_called_once_with(
            Bucket="menus", Key="menus/a.png", Body=b"img", ContentType="image/png"
        )

    def test_upload_error_is_external_service_error(self, mock_client):
        mock_client.return_value.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        with self.assertRaises(ExternalServiceError) as ctx:
            _store().upload_image(b"img", "image/png", "menus/a.png")
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIn("Media upload failed", ctx.exception.message)


class InlineMediaStoreTests(unittest.TestCase):
    def test_inline_data_uri(self):
        stored = InlineMediaStore().upload_image(b"img", None, "menus/a")
        self.assertTrue(stored.inline)
        self.assertEqual(stored.url, "data:application/octet-stream;base64,aW1n")


if __name__ == "__main__":
    unittest.main()
