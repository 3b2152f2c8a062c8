"""
Tests for attachment views
"""

import base64
import io

from django.contrib.auth import get_user_model
from django.test import TestCase, Client, override_settings
from PIL import Image

from attachments.models import Attachment, File
from attachments.services.storage import AttachmentManager, get_storage_backend

User = get_user_model()


def _png_bytes(width=40, height=20):
    output = io.BytesIO()
    Image.new('RGB', (width, height), color=(200, 30, 30)).save(output, format='PNG')
    return output.getvalue()


@override_settings(ATTACHMENT_STORAGE_BACKEND='memory')
class AttachmentViewTestCase(TestCase):
    """Base class storing a PDF and a PNG attachment."""

    def setUp(self):
        """Set up test data"""
        self.client = Client()
        self.user = User.objects.create_user(
            username='testuser',
            email='test@example.com',
            password='testpass123',
        )
        self.client.force_login(self.user)

        self.manager = AttachmentManager(storage=get_storage_backend('memory'))

        self.pdf = self._store_file('report.pdf', 'pdf', 'application/pdf', b'%PDF-1.7 report')
        self.pdf_attachment = Attachment.objects.create(file=self.pdf, owner=self.user)

        self.png = self._store_file('picture.png', 'png', 'image/png', _png_bytes())
        self.png_attachment = Attachment.objects.create(file=self.png, owner=self.user)

    def _store_file(self, name, extension, mime_type, content):
        file = File.objects.create(
            filename=f'{self._testMethodName}_{name}',
            extension=extension,
            original_filename=name,
            mime_type=mime_type,
            file_size=len(content),
            owner=self.user,
        )
        with self.manager.storage.open_write(file.filename) as dest:
            dest.write(content)
        return file


class FileViewTestCase(AttachmentViewTestCase):
    """Test serving files by token."""

    def test_get_inline(self):
        """A 'get' token serves the file inline with its MIME type."""
        url = self.manager.get_file_url(self.pdf_attachment, 'file', self.pdf)

        response = self.client.get(url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b'%PDF-1.7 report')
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertEqual(response['Content-Disposition'], 'inline; filename="report.pdf"')
        self.assertEqual(response['Content-Length'], str(len(b'%PDF-1.7 report')))

    def test_download(self):
        """A 'download' token forces an attachment disposition."""
        url = self.manager.get_file_url(self.pdf_attachment, 'file', self.pdf, access_type='download')

        response = self.client.get(url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Disposition'], 'attachment; filename="report.pdf"')

    def test_login_required(self):
        """Anonymous users are redirected to the login page."""
        url = self.manager.get_file_url(self.pdf_attachment, 'file', self.pdf)
        self.client.logout()

        response = self.client.get(url)

        self.assertEqual(response.status_code, 302)

    def test_invalid_token(self):
        """Garbage tokens return 404."""
        response = self.client.get('/attachments/files/%25%25%25.pdf')
        self.assertEqual(response.status_code, 404)

        short = base64.b64encode(b'attachments.Attachment|file|1').decode('ascii')
        response = self.client.get(f'/attachments/files/{short}.pdf')
        self.assertEqual(response.status_code, 404)

    def test_unknown_model(self):
        """Tokens naming unknown models return 404."""
        url = self.manager.get_attachment_url('nope.Nothing', self.pdf_attachment.pk, 'file', self.pdf)
        self.assertEqual(self.client.get(url).status_code, 404)

        url = self.manager.get_attachment_url('not-a-label', self.pdf_attachment.pk, 'file', self.pdf)
        self.assertEqual(self.client.get(url).status_code, 404)

    def test_field_must_reference_file(self):
        """Only relations to File can be read through a token."""
        url = self.manager.get_attachment_url('attachments.Attachment', self.pdf_attachment.pk, 'owner', self.pdf)
        self.assertEqual(self.client.get(url).status_code, 404)

        url = self.manager.get_attachment_url('attachments.Attachment', self.pdf_attachment.pk, 'missing', self.pdf)
        self.assertEqual(self.client.get(url).status_code, 404)

    def test_missing_parent(self):
        """Tokens pointing at a deleted owner return 404."""
        url = self.manager.get_file_url(self.pdf_attachment, 'file', self.pdf)
        self.pdf_attachment.delete()

        self.assertEqual(self.client.get(url).status_code, 404)

    def test_filename_mismatch(self):
        """Tokens carrying another file name return 404."""
        self.pdf.original_filename = 'other.pdf'
        url = self.manager.get_file_url(self.pdf_attachment, 'file', self.pdf)

        self.assertEqual(self.client.get(url).status_code, 404)

    def test_missing_blob(self):
        """Records whose blob is gone return 404."""
        url = self.manager.get_file_url(self.pdf_attachment, 'file', self.pdf)
        self.manager.storage.delete(self.pdf.filename)

        self.assertEqual(self.client.get(url).status_code, 404)

    def test_quoted_filename_header(self):
        """Quotes in the original file name are escaped in Content-Disposition."""
        quoted = self._store_file('say "hi".pdf', 'pdf', 'application/pdf', b'%PDF-1.7 hi')
        attachment = Attachment.objects.create(file=quoted, owner=self.user)
        url = self.manager.get_file_url(attachment, 'file', quoted)

        response = self.client.get(url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Disposition'], 'inline; filename="say \\"hi\\".pdf"')


class ImageViewTestCase(AttachmentViewTestCase):
    """Test resized and filtered image previews."""

    def test_resize(self):
        """Resized images have exactly the requested size."""
        url = self.manager.get_resized_image_url(self.png, 10, 10)

        response = self.client.get(url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'image/png')
        with Image.open(io.BytesIO(response.content)) as image:
            self.assertEqual(image.size, (10, 10))

    def test_resize_wrong_filename(self):
        """The file name in the URL must match the record."""
        response = self.client.get(f'/attachments/resize/{self.png.pk}/10/10/other.png')
        self.assertEqual(response.status_code, 404)

    def test_resize_out_of_range(self):
        """Zero and huge sizes are rejected."""
        self.assertEqual(self.client.get(self.manager.get_resized_image_url(self.png, 0, 10)).status_code, 404)
        self.assertEqual(self.client.get(self.manager.get_resized_image_url(self.png, 100000, 10)).status_code, 404)

    def test_resize_non_image(self):
        """Non-image files cannot be resized."""
        response = self.client.get(self.manager.get_resized_image_url(self.pdf, 10, 10))
        self.assertEqual(response.status_code, 404)

    @override_settings(ATTACHMENT_IMAGE_FILTERS={'thumb': {'size': (8, 8), 'mode': 'inset'}})
    def test_filter(self):
        """Inset filters keep the aspect ratio inside the box."""
        response = self.client.get(self.manager.get_filtered_image_url(self.png, 'thumb'))

        self.assertEqual(response.status_code, 200)
        with Image.open(io.BytesIO(response.content)) as image:
            self.assertEqual(image.size, (8, 4))

    def test_unknown_filter(self):
        """Unknown filters return 404."""
        response = self.client.get(self.manager.get_filtered_image_url(self.png, 'nope'))
        self.assertEqual(response.status_code, 404)
