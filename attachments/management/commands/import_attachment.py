"""
Management command to import a remote file (URL or local path) as an attachment.
"""

from django.apps import apps
from django.contrib.auth import get_user_model
from django.contrib.contenttypes.models import ContentType
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from attachments.models import Attachment
from attachments.services.storage import AttachmentManager


class Command(BaseCommand):
    help = 'Fetch a file from a URL or local path and store it as an attachment'

    def add_arguments(self, parser):
        parser.add_argument('url', help='http(s) URL, file:// URL or local path of the file')
        parser.add_argument(
            '--owner',
            help='Username of the user owning the imported file',
        )
        parser.add_argument(
            '--attach-to',
            metavar='APP_LABEL.MODEL:PK',
            help='Record to attach the file to, e.g. auth.User:1',
        )
        parser.add_argument(
            '--comment',
            default='',
            help='Comment stored with the attachment (requires --attach-to)',
        )

    def _get_owner(self, username):
        if not username:
            return None
        User = get_user_model()
        try:
            return User.objects.get(**{User.USERNAME_FIELD: username})
        except User.DoesNotExist:
            raise CommandError(f'User "{username}" does not exist')

    def _get_target(self, reference):
        if not reference:
            return None
        label, _, pk = reference.partition(':')
        try:
            model = apps.get_model(label)
        except (LookupError, ValueError):
            raise CommandError(f'Unknown model "{label}"')
        try:
            return model.objects.get(pk=pk)
        except (model.DoesNotExist, ValueError):
            raise CommandError(f'{label} with pk "{pk}" does not exist')

    def handle(self, *args, **options):
        owner = self._get_owner(options['owner'])
        target = self._get_target(options['attach_to'])

        manager = AttachmentManager()
        result = manager.prepare_remote_file(options['url'], owner=owner)
        if not result.ok:
            raise CommandError(f'Could not fetch {options["url"]}: {result.error}')

        file = result.file
        try:
            with transaction.atomic():
                file.save()
                manager.upload(file)
                if target is not None:
                    Attachment.objects.create(
                        file=file,
                        owner=owner,
                        comment=options['comment'],
                        target_content_type=ContentType.objects.get_for_model(target),
                        target_object_id=target.pk,
                    )
        finally:
            result.discard()

        self.stdout.write(self.style.SUCCESS(
            f'Imported {file.original_filename} as file {file.pk} '
            f'({manager.get_file_size(file.file_size)})'
        ))
