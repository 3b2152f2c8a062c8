from django.contrib import admin

from .models import Attachment, File
from .services.storage import human_readable_size


@admin.register(File)
class FileAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'original_filename', 'mime_type', 'get_file_size', 'owner']
    list_filter = ['mime_type', 'created_at']
    search_fields = ['original_filename', 'filename']
    raw_id_fields = ['owner']
    readonly_fields = ['created_at', 'updated_at', 'filename', 'get_file_size']

    fieldsets = (
        (None, {'fields': ('original_filename', 'extension', 'mime_type')}),
        ('Storage', {'fields': ('filename', 'get_file_size')}),
        ('Metadata', {'fields': ('created_at', 'updated_at', 'owner')}),
    )

    def get_file_size(self, obj):
        if obj.file_size is not None:
            return human_readable_size(obj.file_size)
        return "-"
    get_file_size.short_description = 'File Size'


@admin.register(Attachment)
class AttachmentAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'file', 'target_content_type', 'target_object_id', 'owner']
    list_filter = ['target_content_type', 'created_at']
    search_fields = ['comment', 'file__original_filename']
    raw_id_fields = ['file', 'owner']
