"""Split an incoming file batch into rule files and receipt files."""

from collections.abc import Iterable

from pydantic import BaseModel

from taxease.shared.models import UploadedFile

JSON_MEDIA_TYPE = "application/json"


class PartitionedBatch(BaseModel):
    """A batch split by file role, each side in original batch order."""

    rule_files: list[UploadedFile]
    receipt_files: list[UploadedFile]


def is_rule_file(file: UploadedFile) -> bool:
    """A rule file has a .json extension or a declared JSON media type."""
    media_type = (file.media_type or "").split(";")[0].strip().lower()
    return file.extension == ".json" or media_type == JSON_MEDIA_TYPE


def partition_batch(files: Iterable[UploadedFile]) -> PartitionedBatch:
    """Partition a batch without inspecting receipt content.

    Receipt validity is left to the classification provider.
    """
    rule_files: list[UploadedFile] = []
    receipt_files: list[UploadedFile] = []
    for file in files:
        (rule_files if is_rule_file(file) else receipt_files).append(file)
    return PartitionedBatch(rule_files=rule_files, receipt_files=receipt_files)
