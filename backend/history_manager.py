import json
import os
import re
from datetime import datetime
from typing import List, Dict, Optional

from log_config import setup_logger

logger = setup_logger(__name__)

MAX_VERSIONS = 50

CHANGE_DESCRIPTIONS = {
    'insertion': 'Text inserted',
    'deletion': 'Text deleted',
    'modification': 'Text modified',
    'save': 'Document saved'
}


class HistoryManager:
    """Manages the version history of generated LaTeX per document"""

    def __init__(self, history_dir: str = 'history'):
        self.history_dir = history_dir

        # Create history directory if it doesn't exist
        os.makedirs(history_dir, exist_ok=True)

    def _get_history_file(self, document_id) -> str:
        """Get the history file path for a document"""
        safe_id = re.sub(r'[^A-Za-z0-9_-]', '_', str(document_id))
        return os.path.join(self.history_dir, f'versions_{safe_id}.json')

    def _load_history(self, document_id) -> List[Dict]:
        """Load history from JSON file"""
        history_file = self._get_history_file(document_id)
        if os.path.exists(history_file):
            try:
                with open(history_file, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                logger.warning("Could not read version history %s: %s", history_file, e)
                return []
        return []

    def _save_history(self, document_id, versions: List[Dict]):
        """Save history to JSON file"""
        history_file = self._get_history_file(document_id)
        try:
            with open(history_file, 'w', encoding='utf-8') as f:
                json.dump(versions, f, indent=2, ensure_ascii=False)
        except IOError as e:
            logger.warning("Could not save version history %s: %s", history_file, e)

    def get_versions(self, document_id) -> List[Dict]:
        """Get all versions (most recent first)"""
        return self._load_history(document_id)

    def add_version(self, document_id, content: str, user_id: Optional[str] = None,
                    notes: Optional[str] = None, change_type: str = 'save',
                    change_description: Optional[str] = None) -> Dict:
        """
        Add a new version of a document's LaTeX

        Version numbers start at 1.0 and grow by 0.1 from the latest version.
        """
        versions = self._load_history(document_id)

        version_number = 1.0
        if versions:
            try:
                version_number = float(versions[0]['version']) + 0.1
            except (KeyError, TypeError, ValueError):
                version_number = len(versions) * 0.1 + 1.0

        entry = {
            'version': f"{round(version_number, 1):.1f}",
            'content': content,
            'timestamp': datetime.now().isoformat(),
            'user_id': user_id,
            'notes': notes,
            'change_type': change_type,
            'change_description': change_description
        }

        # Add new entry at the beginning (most recent first)
        versions.insert(0, entry)

        # Keep only the last MAX_VERSIONS entries
        versions = versions[:MAX_VERSIONS]

        self._save_history(document_id, versions)
        logger.info("Stored version %s of document %s", entry['version'], document_id)
        return entry

    def get_version(self, document_id, version: str) -> Optional[Dict]:
        """Get a specific version by its number"""
        for entry in self._load_history(document_id):
            if entry.get('version') == version:
                return entry
        return None

    def revert_to_version(self, document_id, version: str) -> Optional[Dict]:
        """Store the content of an older version as a new version"""
        target = self.get_version(document_id, version)
        if not target:
            return None

        return self.add_version(
            document_id,
            target['content'],
            user_id=target.get('user_id'),
            notes=f"Reverted to version {version}",
            change_type='modification',
            change_description=f"Reverted to version {version} from {target['timestamp']}"
        )

    def compare_versions(self, document_id, version1: str, version2: str) -> Dict[str, List[str]]:
        """Line-by-line differences between two versions"""
        result = {'added': [], 'removed': [], 'modified': []}

        v1 = self.get_version(document_id, version1)
        v2 = self.get_version(document_id, version2)
        if not v1 or not v2:
            return result

        lines1 = v1['content'].split('\n')
        lines2 = v2['content'].split('\n')

        for i in range(max(len(lines1), len(lines2))):
            line1 = lines1[i] if i < len(lines1) else ''
            line2 = lines2[i] if i < len(lines2) else ''
            if line1 == line2:
                continue
            if line1 == '':
                result['added'].append(f"Line {i + 1}: {line2}")
            elif line2 == '':
                result['removed'].append(f"Line {i + 1}: {line1}")
            else:
                result['modified'].append(f'Line {i + 1}: "{line1}" -> "{line2}"')

        return result

    def has_meaningful_changes(self, document_id, new_content: str) -> bool:
        """Whether new content differs enough from the latest version to be stored"""
        if not new_content or not new_content.strip():
            return False

        versions = self._load_history(document_id)
        if not versions:
            return True

        normalized_new = new_content.strip()
        normalized_latest = versions[0]['content'].strip()
        if normalized_new == normalized_latest:
            return False

        new_lines = [line for line in normalized_new.split('\n') if line.strip()]
        latest_lines = [line for line in normalized_latest.split('\n') if line.strip()]
        if abs(len(new_lines) - len(latest_lines)) > 1:
            return True

        new_chars = re.sub(r'\s', '', normalized_new)
        latest_chars = re.sub(r'\s', '', normalized_latest)
        max_length = max(len(new_chars), len(latest_chars))
        char_difference = abs(len(new_chars) - len(latest_chars))

        return char_difference > 5 or (max_length > 0 and char_difference / max_length > 0.05)

    def delete_versions(self, document_id):
        """Remove the whole history of a document"""
        history_file = self._get_history_file(document_id)
        if os.path.exists(history_file):
            os.remove(history_file)


def get_change_description(version: Dict) -> str:
    """Human-readable description of a version's change"""
    if version.get('change_description'):
        return version['change_description']
    return CHANGE_DESCRIPTIONS.get(version.get('change_type'), 'Change made')
