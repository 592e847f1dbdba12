"""
Archive Manager for the LaTeX Generator
Handles storage and retrieval of BPMN diagrams and their generated LaTeX per user
"""

import io
import json
import os
import shutil
import sqlite3
import uuid
import zipfile
from datetime import datetime
from typing import List, Dict, Optional

from werkzeug.utils import secure_filename

from log_config import setup_logger

logger = setup_logger(__name__)


class ArchiveManager:
    def __init__(self, archive_dir: str = "archives", db_path: str = "archive.db"):
        """
        Initialize archive manager

        Args:
            archive_dir: Base directory for storing archived files
            db_path: Path to SQLite database
        """
        self.archive_dir = archive_dir
        self.db_path = db_path

        # Create archive directory if it doesn't exist
        os.makedirs(archive_dir, exist_ok=True)

        # Initialize database
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self):
        """Create database tables if they don't exist"""
        conn = self._connect()
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS archives (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                file_name TEXT NOT NULL,
                bpmn_path TEXT NOT NULL,
                tex_path TEXT NOT NULL,
                process_metadata TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')

        # Create index on user_id for faster queries
        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_user_id ON archives(user_id)
        ''')

        conn.commit()
        conn.close()

    @staticmethod
    def _write_file(path: str, content: str):
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)

    @staticmethod
    def _read_file(path: str) -> Optional[str]:
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    def save_archive(self, user_id: str, name: str, file_name: str, bpmn_xml: str,
                     latex: str, process_metadata: Optional[Dict] = None) -> int:
        """
        Save a BPMN diagram and its LaTeX to the user's archive

        Args:
            user_id: User identifier
            name: Display name of the process
            file_name: Original diagram file name
            bpmn_xml: Diagram XML
            latex: Generated LaTeX
            process_metadata: Metadata used for the conversion

        Returns:
            Archive ID
        """
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

        # One folder per archive under the user's directory
        archive_folder = os.path.join(self.archive_dir, user_id, f"{timestamp}_{uuid.uuid4().hex[:8]}")
        os.makedirs(archive_folder, exist_ok=True)

        base_name = secure_filename(os.path.splitext(file_name)[0]) or 'diagram'
        bpmn_dest = os.path.join(archive_folder, f"{base_name}.bpmn")
        tex_dest = os.path.join(archive_folder, f"{base_name}.tex")

        self._write_file(bpmn_dest, bpmn_xml)
        self._write_file(tex_dest, latex)

        now = datetime.now().isoformat()
        conn = self._connect()
        cursor = conn.cursor()

        cursor.execute('''
            INSERT INTO archives (user_id, name, file_name, bpmn_path, tex_path,
                                  process_metadata, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            user_id,
            name,
            file_name,
            bpmn_dest,
            tex_dest,
            json.dumps(process_metadata or {}),
            now,
            now
        ))

        archive_id = cursor.lastrowid
        conn.commit()
        conn.close()

        logger.info("Archived %s for user %s as %s", file_name, user_id, archive_id)
        return archive_id

    def get_user_archives(self, user_id: str, limit: int = 100) -> List[Dict]:
        """
        Get all archives for a user

        Args:
            user_id: User identifier
            limit: Maximum number of archives to return

        Returns:
            List of archive dictionaries
        """
        conn = self._connect()
        cursor = conn.cursor()

        cursor.execute('''
            SELECT id, name, file_name, created_at, updated_at
            FROM archives
            WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
        ''', (user_id, limit))

        archives = [dict(row) for row in cursor.fetchall()]

        conn.close()
        return archives

    def get_archive(self, archive_id: int) -> Optional[Dict]:
        """
        Get a specific archive by ID

        Args:
            archive_id: Archive ID

        Returns:
            Archive dictionary or None if not found
        """
        conn = self._connect()
        cursor = conn.cursor()

        cursor.execute('''
            SELECT id, user_id, name, file_name, bpmn_path, tex_path,
                   process_metadata, created_at, updated_at
            FROM archives
            WHERE id = ?
        ''', (archive_id,))

        row = cursor.fetchone()
        conn.close()

        if row:
            archive = dict(row)
            archive['process_metadata'] = json.loads(archive['process_metadata'] or '{}')
            return archive
        return None

    def get_archive_content(self, archive_id: int) -> Optional[Dict]:
        """Archive record together with the stored BPMN XML and LaTeX"""
        archive = self.get_archive(archive_id)
        if not archive:
            return None
        archive['bpmn_xml'] = self._read_file(archive['bpmn_path'])
        archive['latex'] = self._read_file(archive['tex_path'])
        return archive

    def update_archive(self, archive_id: int, user_id: str, bpmn_xml: Optional[str] = None,
                       latex: Optional[str] = None, name: Optional[str] = None,
                       process_metadata: Optional[Dict] = None) -> bool:
        """
        Replace the stored files and/or fields of an archive (only if it belongs to the user)

        Returns:
            True if updated, False if not found or doesn't belong to user
        """
        archive = self.get_archive(archive_id)

        if not archive or archive['user_id'] != user_id:
            return False

        if bpmn_xml is not None:
            self._write_file(archive['bpmn_path'], bpmn_xml)
        if latex is not None:
            self._write_file(archive['tex_path'], latex)

        conn = self._connect()
        cursor = conn.cursor()

        cursor.execute('''
            UPDATE archives
            SET name = ?, process_metadata = ?, updated_at = ?
            WHERE id = ?
        ''', (
            name if name is not None else archive['name'],
            json.dumps(process_metadata if process_metadata is not None else archive['process_metadata']),
            datetime.now().isoformat(),
            archive_id
        ))

        conn.commit()
        conn.close()

        return True

    def delete_archive(self, archive_id: int, user_id: str) -> bool:
        """
        Delete an archive (only if it belongs to the user)

        Args:
            archive_id: Archive ID
            user_id: User ID (for security check)

        Returns:
            True if deleted, False if not found or doesn't belong to user
        """
        archive = self.get_archive(archive_id)

        if not archive or archive['user_id'] != user_id:
            return False

        folder = os.path.dirname(archive['bpmn_path'])
        try:
            if os.path.exists(folder):
                shutil.rmtree(folder)
        except OSError as e:
            logger.warning("Error deleting files of archive %s: %s", archive_id, e)

        # Delete from database
        conn = self._connect()
        cursor = conn.cursor()

        cursor.execute('DELETE FROM archives WHERE id = ?', (archive_id,))

        conn.commit()
        conn.close()

        return True

    def get_file_path(self, archive_id: int, file_type: str) -> Optional[str]:
        """
        Get file path for an archive

        Args:
            archive_id: Archive ID
            file_type: 'bpmn' or 'tex'

        Returns:
            File path or None if not found
        """
        archive = self.get_archive(archive_id)

        if not archive:
            return None

        if file_type == 'bpmn':
            return archive['bpmn_path'] if os.path.exists(archive['bpmn_path']) else None
        elif file_type == 'tex':
            return archive['tex_path'] if os.path.exists(archive['tex_path']) else None

        return None

    def build_export_zip(self, archive_id: int) -> Optional[bytes]:
        """ZIP containing the archived .bpmn and .tex files"""
        archive = self.get_archive(archive_id)
        if not archive:
            return None

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
            for path in (archive['bpmn_path'], archive['tex_path']):
                if os.path.exists(path):
                    zf.write(path, arcname=os.path.basename(path))
        return buffer.getvalue()
