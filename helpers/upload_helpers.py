"""
File upload helpers.

Uploads are checked against the table's FileUploadPolicy (size, extension)
before anything touches the filesystem, then stored under a generated name
so a client can never choose the final path or overwrite an existing file.
"""
import os
import uuid
from pathlib import Path
from typing import Tuple

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from error_handler import UploadError
from logging_helper import LoggingHelper, LogType

logger = LoggingHelper.get_logger(LogType.MAIN)


def measure_upload_size(upload: FileStorage) -> int:
    """Size of the uploaded payload in bytes, measured from its stream."""
    stream = upload.stream
    try:
        position = stream.tell()
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(position)
        return size
    except (AttributeError, OSError):
        return upload.content_length or 0


def get_extension(filename: str) -> str:
    """
    Lowercased extension without the dot ('' when there is none).

    Examples:
        >>> get_extension('Report.PDF')
        'pdf'
        >>> get_extension('archive')
        ''
    """
    _, dot, extension = (filename or '').rpartition('.')
    return extension.lower() if dot else ''


def validate_upload(upload: FileStorage, policy) -> str:
    """
    Check size and extension against the policy.

    Returns:
        The validated extension

    Raises:
        UploadError: If nothing was uploaded, the file is too large,
                     or the extension is not allowed
    """
    if upload is None or not upload.filename:
        raise UploadError('No file uploaded')

    if measure_upload_size(upload) > policy.max_file_size:
        raise UploadError('File size exceeds maximum allowed size')

    extension = get_extension(upload.filename)
    if not extension or not policy.is_extension_allowed(extension):
        raise UploadError('File type not allowed')

    return extension


class LocalFileStore:
    """Stores uploads on the local filesystem."""

    def store(self, upload: FileStorage, target_dir: str, extension: str) -> Tuple[str, str]:
        """
        Save an already validated upload under a collision-resistant name.

        Args:
            upload: The uploaded file
            target_dir: Directory from the upload policy
            extension: Extension returned by validate_upload()

        Returns:
            Tuple of (file_path, file_name)

        Raises:
            UploadError: If the directory cannot be created or the file cannot be written
        """
        safe_name = secure_filename(upload.filename or '')
        if not safe_name or get_extension(safe_name) != extension:
            safe_name = f"upload.{extension}"
        file_name = f"{uuid.uuid4().hex}_{safe_name}"

        directory = Path(target_dir)
        file_path = directory / file_name
        try:
            directory.mkdir(parents=True, exist_ok=True)
            upload.save(str(file_path))
        except OSError as e:
            logger.error(f"Failed to store upload in {directory}: {e}")
            raise UploadError('Failed to move uploaded file') from e

        logger.debug(f"Stored upload as {file_path}")
        return str(file_path), file_name

    def discard(self, file_path: str) -> None:
        """Remove a stored upload whose record write did not go through."""
        try:
            os.remove(file_path)
            logger.debug(f"Discarded upload {file_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to discard upload {file_path}: {e}")
