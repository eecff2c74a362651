"""Models for uploader app.

FileEntry - one row per stored file, used when the catalog runs on the database backend.
The auto-increment ``seq`` keeps rows in upload order; ``file_id`` is the public id.
"""
from tortoise import fields, models


class FileEntry(models.Model):
    seq = fields.IntField(pk=True)
    file_id = fields.CharField(max_length=64, unique=True)
    name = fields.CharField(max_length=1024)
    stored_name = fields.CharField(max_length=255)
    size = fields.BigIntField()
    mime_type = fields.CharField(max_length=255, null=True)
    uploaded_at = fields.CharField(max_length=32)

    class Meta:
        default_connection = "default"
        table = "files_catalog"
        ordering = ["seq"]
