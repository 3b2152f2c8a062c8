"""
Display helpers for attachments: human readable sizes and file type icons.
"""

from typing import Mapping, Optional

from django.conf import settings

SIZE_UNITS = ['B', 'KB', 'MB', 'GB']

# Extension -> icon CSS class. ``default`` is used for anything unmapped.
DEFAULT_FILE_ICONS = {
    'default': 'icon-file',
    'txt': 'icon-file-text',
    'csv': 'icon-file-text',
    'doc': 'icon-file-word',
    'docx': 'icon-file-word',
    'odt': 'icon-file-word',
    'xls': 'icon-file-excel',
    'xlsx': 'icon-file-excel',
    'ods': 'icon-file-excel',
    'ppt': 'icon-file-powerpoint',
    'pptx': 'icon-file-powerpoint',
    'pdf': 'icon-file-pdf',
    'zip': 'icon-file-archive',
    'gz': 'icon-file-archive',
    'rar': 'icon-file-archive',
    'jpg': 'icon-file-image',
    'jpeg': 'icon-file-image',
    'png': 'icon-file-image',
    'gif': 'icon-file-image',
    'svg': 'icon-file-image',
    'mp3': 'icon-file-audio',
    'mp4': 'icon-file-video',
}


def human_readable_size(size_bytes: int) -> str:
    """
    Format a byte count for display.

    The unit bucket is picked from the number of decimal digits of the
    count: 1-3 digits are bytes, 4-6 KB, 7-9 MB, 10-12 GB. Values are
    divided by powers of 1000 and shown with two decimals. Counts beyond
    the GB bucket are returned unformatted.

    Examples:
        >>> human_readable_size(512)
        '512.00 B'
        >>> human_readable_size(1500)
        '1.50 KB'

    Raises:
        ValueError: If size_bytes is negative or not an integer
    """
    if isinstance(size_bytes, bool) or not isinstance(size_bytes, int):
        raise ValueError(f"Size must be an integer byte count, got {size_bytes!r}")
    if size_bytes < 0:
        raise ValueError(f"Size must not be negative, got {size_bytes}")

    factor = (len(str(size_bytes)) - 1) // 3
    if factor >= len(SIZE_UNITS):
        return str(size_bytes)

    return f"{size_bytes / 1000 ** factor:.2f} {SIZE_UNITS[factor]}"


def get_file_icons() -> Mapping[str, str]:
    """Return the configured icon mapping (ATTACHMENT_FILE_ICONS setting)."""
    return getattr(settings, 'ATTACHMENT_FILE_ICONS', None) or DEFAULT_FILE_ICONS


def icon_class_for(extension: Optional[str], icons: Optional[Mapping[str, str]] = None) -> str:
    """
    Look up the icon class for a file extension.

    Args:
        extension: Extension without the dot, any case
        icons: Mapping to use instead of the configured one

    Returns:
        Mapped icon class, or the mapping's ``default`` entry
    """
    icons = icons if icons is not None else get_file_icons()
    if extension:
        icon = icons.get(extension.lower())
        if icon is not None:
            return icon
    return icons.get('default', DEFAULT_FILE_ICONS['default'])
