"""
Patient file storage on top of a Django storage backend.

Files live under ``patients/<patient id>/<folder>/<millis>_<name>``.  Every
operation returns a result dict with ``success`` and ``error`` instead of
raising, so one bad file in a batch upload does not hide the others.
"""
from __future__ import annotations

import logging
import re
import time
from typing import Optional

from django.conf import settings
from django.core.exceptions import SuspiciousFileOperation
from django.core.files.storage import Storage, default_storage
from django.utils.text import get_valid_filename

logger = logging.getLogger(__name__)

DEFAULT_FOLDER = 'documents'
FOLDER_RE = re.compile(r'^[A-Za-z0-9_-]{1,50}$')


class PatientFileStore:

    def __init__(self, storage: Optional[Storage] = None, clock=time.time):
        self.storage = storage or default_storage
        self.clock = clock

    @staticmethod
    def folder_path(patient_id: int, folder: str = DEFAULT_FOLDER) -> str:
        if not FOLDER_RE.match(folder or ''):
            raise ValueError('invalid folder name')
        return f'patients/{patient_id}/{folder}'

    def check_upload(self, f) -> None:
        size_mb = (f.size or 0) / (1024 * 1024)
        if size_mb > settings.UPLOAD_MAX_MB:
            raise ValueError('file too large')
        ctype = getattr(f, 'content_type', '') or ''
        if not any(ctype.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES if prefix):
            raise ValueError('unsupported file type')

    def put(self, patient_id: int, f, folder: str = DEFAULT_FOLDER) -> dict:
        original = getattr(f, 'name', '') or 'file'
        try:
            base = self.folder_path(patient_id, folder)
            self.check_upload(f)
            name = f'{int(self.clock() * 1000)}_{get_valid_filename(original.rsplit("/", 1)[-1])}'
            path = self.storage.save(f'{base}/{name}', f)
        except (ValueError, OSError, SuspiciousFileOperation) as e:
            logger.warning('upload of %r for patient %s failed: %s', original, patient_id, e)
            return {'success': False, 'error': str(e), 'originalName': original}
        return {
            'success': True,
            'url': self.url(path),
            'fileName': path.rsplit('/', 1)[-1],
            'fullPath': path,
            'originalName': original,
            'error': None,
        }

    def put_many(self, patient_id: int, files, folder: str = DEFAULT_FOLDER) -> dict:
        results = [self.put(patient_id, f, folder) for f in files]
        failed = [r for r in results if not r['success']]
        return {
            'success': not failed,
            'files': results,
            'error': f'{len(failed)} of {len(results)} uploads failed' if failed else None,
        }

    def list(self, patient_id: int, folder: str = DEFAULT_FOLDER) -> dict:
        try:
            base = self.folder_path(patient_id, folder)
            if not self.storage.exists(base):
                return {'success': True, 'files': [], 'error': None}
            _, names = self.storage.listdir(base)
        except (ValueError, OSError, SuspiciousFileOperation) as e:
            return {'success': False, 'files': [], 'error': str(e)}
        files = [{'name': n, 'url': self.url(f'{base}/{n}'), 'fullPath': f'{base}/{n}'} for n in sorted(names)]
        return {'success': True, 'files': files, 'error': None}

    def url(self, path: str) -> str:
        return self.storage.url(path)

    def delete(self, patient_id: int, file_name: str, folder: str = DEFAULT_FOLDER) -> dict:
        try:
            base = self.folder_path(patient_id, folder)
            if file_name != get_valid_filename(file_name):
                raise ValueError('invalid file name')
            path = f'{base}/{file_name}'
            if not self.storage.exists(path):
                return {'success': False, 'error': 'file not found'}
            self.storage.delete(path)
        except (ValueError, OSError, SuspiciousFileOperation) as e:
            return {'success': False, 'error': str(e)}
        return {'success': True, 'error': None}

    def delete_all(self, patient_id: int) -> int:
        """Remove every file of the patient; returns how many were deleted."""
        root = f'patients/{patient_id}'
        removed = 0
        try:
            if not self.storage.exists(root):
                return 0
            folders, _ = self.storage.listdir(root)
            for folder in folders:
                _, names = self.storage.listdir(f'{root}/{folder}')
                for n in names:
                    self.storage.delete(f'{root}/{folder}/{n}')
                    removed += 1
        except OSError as e:
            logger.error('cleanup of files for patient %s incomplete: %s', patient_id, e)
        return removed
