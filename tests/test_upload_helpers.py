"""
Tests for upload validation and local storage.
"""
import io
import os
from unittest.mock import patch

import pytest
from werkzeug.datastructures import FileStorage

from error_handler import UploadError
from helpers.upload_helpers import LocalFileStore, get_extension, measure_upload_size, validate_upload
from table_config import FileUploadPolicy


def upload(content=b'hello', filename='notes.pdf'):
    return FileStorage(stream=io.BytesIO(content), filename=filename)


@pytest.fixture
def policy(tmp_path):
    return FileUploadPolicy(str(tmp_path / 'files'), ['pdf', '.PNG'], 10)


def test_get_extension():
    assert get_extension('Report.PDF') == 'pdf'
    assert get_extension('archive.tar.gz') == 'gz'
    assert get_extension('README') == ''
    assert get_extension('') == ''


def test_measure_upload_size_keeps_stream_position():
    storage = upload(b'0123456789')
    storage.stream.seek(3)
    assert measure_upload_size(storage) == 10
    assert storage.stream.tell() == 3


def test_validate_upload(policy):
    assert validate_upload(upload(filename='scan.PNG'), policy) == 'png'
    assert validate_upload(upload(b'x' * 10), policy) == 'pdf'


def test_validate_upload_rejections(policy):
    with pytest.raises(UploadError, match='No file uploaded'):
        validate_upload(None, policy)
    with pytest.raises(UploadError, match='No file uploaded'):
        validate_upload(upload(filename=''), policy)
    with pytest.raises(UploadError, match='File size exceeds maximum allowed size'):
        validate_upload(upload(b'x' * 11), policy)
    with pytest.raises(UploadError, match='File type not allowed'):
        validate_upload(upload(filename='shell.php'), policy)


def test_store_generates_unique_safe_names(policy):
    store = LocalFileStore()
    first_path, first_name = store.store(upload(filename='../secret notes.pdf'), policy.upload_path, 'pdf')
    second_path, second_name = store.store(upload(filename='../secret notes.pdf'), policy.upload_path, 'pdf')

    assert first_name != second_name
    assert first_name.endswith('_secret_notes.pdf')
    assert os.path.dirname(first_path) == policy.upload_path
    with open(first_path, 'rb') as f:
        assert f.read() == b'hello'


def test_store_falls_back_when_name_has_no_safe_characters(policy):
    _, file_name = LocalFileStore().store(upload(filename='..pdf'), policy.upload_path, 'pdf')
    assert file_name.endswith('_upload.pdf')


def test_store_failure_is_an_upload_error(policy):
    with patch.object(FileStorage, 'save', side_effect=OSError('read-only file system')):
        with pytest.raises(UploadError, match='Failed to move uploaded file'):
            LocalFileStore().store(upload(), policy.upload_path, 'pdf')


def test_discard_removes_stored_file(policy):
    store = LocalFileStore()
    file_path, _ = store.store(upload(), policy.upload_path, 'pdf')
    store.discard(file_path)
    assert not os.path.exists(file_path)
    # Already gone is not an error
    store.discard(file_path)
