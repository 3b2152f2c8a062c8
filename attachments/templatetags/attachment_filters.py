"""Template filters and tags for rendering attachments."""
from django import template

from attachments.services.storage import AttachmentManager, human_readable_size, icon_class_for

register = template.Library()


@register.filter
def file_size(value):
    """
    Render a byte count as a human readable size.

    Usage in templates:
        {{ attachment.file.file_size|file_size }}
    """
    if value is None or value == '':
        return ''
    try:
        return human_readable_size(int(value))
    except (TypeError, ValueError):
        return value


@register.filter
def file_icon(file):
    """
    Return the icon CSS class for a File record.

    Usage in templates:
        <i class="{{ attachment.file|file_icon }}"></i>
    """
    if file is None:
        return icon_class_for(None)
    return icon_class_for(file.extension)


@register.simple_tag(takes_context=True)
def attachment_url(context, parent, field_name, file, access_type='get', absolute=False):
    """
    Build the URL of a file attached to a record.

    Usage in templates:
        {% attachment_url invoice 'scan' invoice.scan 'download' %}
    """
    if file is None:
        return ''
    manager = AttachmentManager()
    return manager.get_file_url(
        parent,
        field_name,
        file,
        access_type=access_type,
        absolute=absolute,
        request=context.get('request'),
    )
