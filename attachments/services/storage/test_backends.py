"""
Tests for attachment storage backends
"""

import shutil
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

from botocore.exceptions import ClientError
from django.test import SimpleTestCase, override_settings

from attachments.services.storage import (
    AttachmentNotFound,
    InMemoryStorageBackend,
    LocalStorageBackend,
    MetadataSupport,
    S3StorageBackend,
    StorageError,
    get_storage_backend,
)


def _client_error(code, operation='HeadObject'):
    return ClientError({'Error': {'Code': code, 'Message': code}}, operation)


class LocalStorageBackendTestCase(SimpleTestCase):
    """Test the local filesystem backend."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.storage = LocalStorageBackend(self.temp_dir)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_write_and_read(self):
        """Written blobs can be read back and are reported by has()."""
        with self.storage.open_write('abc.txt') as dest:
            dest.write(b'hello ')
            dest.write(b'world')

        self.assertTrue(self.storage.has('abc.txt'))
        self.assertEqual(self.storage.get('abc.txt'), b'hello world')
        self.assertEqual((Path(self.temp_dir) / 'abc.txt').read_bytes(), b'hello world')

    def test_write_truncates_existing(self):
        """Writing an existing key replaces its content."""
        with self.storage.open_write('abc.txt') as dest:
            dest.write(b'a much longer first version')
        with self.storage.open_write('abc.txt') as dest:
            dest.write(b'short')

        self.assertEqual(self.storage.get('abc.txt'), b'short')

    def test_delete(self):
        """Deleted blobs are gone."""
        with self.storage.open_write('abc.txt') as dest:
            dest.write(b'x')

        self.storage.delete('abc.txt')

        self.assertFalse(self.storage.has('abc.txt'))
        with self.assertRaises(AttachmentNotFound):
            self.storage.delete('abc.txt')

    def test_missing_key(self):
        """Missing keys are reported and raise on read."""
        self.assertFalse(self.storage.has('missing.txt'))
        self.assertFalse(self.storage.has(''))
        self.assertFalse(self.storage.has(None))
        with self.assertRaises(AttachmentNotFound):
            self.storage.get('missing.txt')

    def test_path_traversal_rejected(self):
        """Keys cannot escape the storage root."""
        with self.assertRaises(ValueError):
            self.storage.get('../outside.txt')

    def test_no_metadata_support(self):
        """The local backend cannot tag objects."""
        self.assertNotIsInstance(self.storage, MetadataSupport)


class InMemoryStorageBackendTestCase(SimpleTestCase):
    """Test the in-memory backend."""

    def setUp(self):
        self.storage = InMemoryStorageBackend()

    def test_write_read_delete(self):
        """Blobs can be written, read and deleted."""
        with self.storage.open_write('k') as dest:
            dest.write(b'data')

        self.assertTrue(self.storage.has('k'))
        self.assertEqual(self.storage.get('k'), b'data')

        self.storage.delete('k')
        self.assertFalse(self.storage.has('k'))
        with self.assertRaises(AttachmentNotFound):
            self.storage.get('k')

    def test_failed_write_is_discarded(self):
        """A write interrupted by an error leaves the previous blob untouched."""
        with self.storage.open_write('k') as dest:
            dest.write(b'original')

        with self.assertRaises(RuntimeError):
            with self.storage.open_write('k') as dest:
                dest.write(b'partial')
                raise RuntimeError('disk on fire')

        self.assertEqual(self.storage.get('k'), b'original')

    def test_metadata(self):
        """Metadata is kept per key and dropped with the blob."""
        self.storage.set_metadata('k', {'contentType': 'text/plain'})
        with self.storage.open_write('k') as dest:
            dest.write(b'x')

        self.assertEqual(self.storage.get_metadata('k'), {'contentType': 'text/plain'})

        self.storage.delete('k')
        self.assertEqual(self.storage.get_metadata('k'), {})


class S3StorageBackendTestCase(SimpleTestCase):
    """Test the S3 backend against a mocked boto3 client."""

    def setUp(self):
        self.client = MagicMock()
        self.storage = S3StorageBackend('bucket', client=self.client, prefix='att/')

    def test_has(self):
        """has() maps HEAD results, treating 404 as missing."""
        self.assertTrue(self.storage.has('a.txt'))
        self.client.head_object.assert_called_once_with(Bucket='bucket', Key='att/a.txt')

        self.client.head_object.side_effect = _client_error('404')
        self.assertFalse(self.storage.has('a.txt'))

        self.client.head_object.side_effect = _client_error('403')
        with self.assertRaises(StorageError):
            self.storage.has('a.txt')

    def test_get(self):
        """get() returns the object body."""
        body = MagicMock()
        body.read.return_value = b'content'
        self.client.get_object.return_value = {'Body': body}

        self.assertEqual(self.storage.get('a.txt'), b'content')
        self.client.get_object.assert_called_once_with(Bucket='bucket', Key='att/a.txt')

    def test_get_missing(self):
        """Missing objects raise AttachmentNotFound."""
        self.client.get_object.side_effect = _client_error('NoSuchKey', 'GetObject')
        with self.assertRaises(AttachmentNotFound):
            self.storage.get('a.txt')

    def test_delete(self):
        """delete() removes the object."""
        self.storage.delete('a.txt')
        self.client.delete_object.assert_called_once_with(Bucket='bucket', Key='att/a.txt')

    def test_write_uploads_with_content_type(self):
        """Closing a write uploads the content tagged with its content type."""
        uploaded = {}

        def fake_upload(fileobj, bucket, key, ExtraArgs=None):
            uploaded['body'] = fileobj.read()
            uploaded['bucket'] = bucket
            uploaded['key'] = key
            uploaded['extra'] = ExtraArgs

        self.client.upload_fileobj.side_effect = fake_upload
        self.storage.set_metadata('a.pdf', {'contentType': 'application/pdf'})

        with self.storage.open_write('a.pdf') as dest:
            dest.write(b'%PDF-')
            dest.write(b'1.7')

        self.assertEqual(uploaded['body'], b'%PDF-1.7')
        self.assertEqual(uploaded['bucket'], 'bucket')
        self.assertEqual(uploaded['key'], 'att/a.pdf')
        self.assertEqual(uploaded['extra'], {'ContentType': 'application/pdf'})

    def test_metadata_released_after_upload(self):
        """Pending metadata is dropped once the object is uploaded."""
        self.storage.set_metadata('a.pdf', {'contentType': 'application/pdf'})

        with self.storage.open_write('a.pdf') as dest:
            dest.write(b'%PDF-1.7')

        self.assertEqual(self.storage.get_metadata('a.pdf'), {})

    def test_metadata_kept_when_upload_fails(self):
        """A failed upload keeps the metadata for a retry."""
        self.client.upload_fileobj.side_effect = OSError('connection reset')
        self.storage.set_metadata('a.pdf', {'contentType': 'application/pdf'})

        with self.assertRaises(OSError):
            with self.storage.open_write('a.pdf') as dest:
                dest.write(b'%PDF-1.7')

        self.assertEqual(self.storage.get_metadata('a.pdf'), {'contentType': 'application/pdf'})

    def test_failed_write_is_not_uploaded(self):
        """Nothing is uploaded when the write fails."""
        with self.assertRaises(OSError):
            with self.storage.open_write('a.pdf') as dest:
                dest.write(b'partial')
                raise OSError('read error')

        self.client.upload_fileobj.assert_not_called()


class GetStorageBackendTestCase(SimpleTestCase):
    """Test building the configured backend."""

    def test_memory_backend_is_shared(self):
        """The 'memory' backend is one store per process."""
        first = get_storage_backend('memory')
        self.assertIsInstance(first, InMemoryStorageBackend)
        self.assertIs(first, get_storage_backend('memory'))

    def test_local_backend(self):
        """The 'local' backend uses ATTACHMENT_STORAGE_DIR."""
        temp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, temp_dir, True)

        with override_settings(ATTACHMENT_STORAGE_BACKEND='local', ATTACHMENT_STORAGE_DIR=temp_dir):
            storage = get_storage_backend()

        self.assertIsInstance(storage, LocalStorageBackend)
        self.assertEqual(storage.root, Path(temp_dir))

    @override_settings(
        ATTACHMENT_S3_BUCKET='files',
        ATTACHMENT_S3_ENDPOINT_URL='http://localhost:9000',
        ATTACHMENT_S3_ACCESS_KEY_ID='key',
        ATTACHMENT_S3_SECRET_ACCESS_KEY='secret',
        ATTACHMENT_S3_REGION='us-east-1',
    )
    def test_s3_backend(self):
        """The 's3' backend targets the configured bucket."""
        storage = get_storage_backend('s3')
        self.assertIsInstance(storage, S3StorageBackend)
        self.assertEqual(storage.bucket, 'files')

    def test_unknown_backend(self):
        """Unknown backend names are rejected."""
        with self.assertRaises(ValueError):
            get_storage_backend('ftp')
