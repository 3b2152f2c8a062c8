import logging

from django.apps import apps
from django.contrib.auth.decorators import login_required
from django.core.exceptions import FieldDoesNotExist
from django.http import Http404, HttpResponse
from django.shortcuts import get_object_or_404
from django.utils.http import content_disposition_header

from .models import File
from .services.imaging import ImageProcessingError, get_image_filter, make_thumbnail
from .services.storage import (
    AccessType,
    AttachmentDescriptor,
    AttachmentManager,
    AttachmentNotFound,
    InvalidTokenError,
)

logger = logging.getLogger(__name__)


def _resolve_file(descriptor):
    """Find the File a token points at through its owning record."""
    try:
        model = apps.get_model(descriptor.parent_class)
    except (LookupError, ValueError):
        raise Http404("Unknown attachment owner")

    try:
        field = model._meta.get_field(descriptor.field_name)
    except FieldDoesNotExist:
        raise Http404("Unknown attachment field")

    if not field.is_relation or field.related_model is not File or not field.concrete:
        raise Http404("Unknown attachment field")

    parent = get_object_or_404(model, pk=descriptor.parent_id)
    file = getattr(parent, field.name)
    if file is None or file.original_filename != descriptor.original_filename:
        raise Http404("Attachment not found")

    return file


def _read_content(manager, file):
    try:
        return manager.get_content(file)
    except AttachmentNotFound:
        logger.warning("Stored file missing for attachment %s", file.pk)
        raise Http404("Attachment not found")


@login_required
def file_view(request, coded_string, extension=None):
    """Serve an attachment addressed by its URL token."""
    try:
        descriptor = AttachmentDescriptor.from_token(coded_string)
    except InvalidTokenError:
        raise Http404("Invalid attachment URL")

    file = _resolve_file(descriptor)
    content = _read_content(AttachmentManager(), file)

    response = HttpResponse(content, content_type=file.mime_type or 'application/octet-stream')
    disposition = content_disposition_header(
        descriptor.access_type == AccessType.DOWNLOAD, file.original_filename or ''
    )
    if disposition:
        response['Content-Disposition'] = disposition
    response['Content-Length'] = len(content)
    return response


def _image_response(file, size, mode):
    content = _read_content(AttachmentManager(), file)
    try:
        thumbnail, mime_type = make_thumbnail(content, size, mode)
    except ImageProcessingError:
        raise Http404("Attachment is not an image")

    return HttpResponse(thumbnail, content_type=mime_type)


@login_required
def resize_image(request, id, width, height, filename):
    """Serve an image attachment scaled to width x height."""
    file = get_object_or_404(File, pk=id)
    if file.original_filename != filename:
        raise Http404("Attachment not found")

    return _image_response(file, (width, height), 'outbound')


@login_required
def filtered_image(request, filter_name, id, filename):
    """Serve an image attachment with a configured filter applied."""
    image_filter = get_image_filter(filter_name)
    if image_filter is None:
        raise Http404("Unknown image filter")

    file = get_object_or_404(File, pk=id)
    if file.original_filename != filename:
        raise Http404("Attachment not found")

    return _image_response(file, image_filter['size'], image_filter.get('mode', 'outbound'))
