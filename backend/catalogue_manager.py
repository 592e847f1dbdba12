import json
import os
import uuid
from datetime import datetime
from typing import List, Dict

from log_config import setup_logger

logger = setup_logger(__name__)

KPI_FIELDS = {
    'name': '',
    'type': '',
    'direction': '',
    'target': 0,
    'unit': '',
    'description': '',
    'category': '',
    'frequency': 'Monthly',
    'receiver': '',
    'source': '',
    'active': True,
    'mode': 'Manual',
    'tag': '',
    'associated_bpmn_processes': []
}

STANDARD_FIELDS = {
    'name': '',
    'code': '',
    'description': '',
    'category': ''
}


class CatalogueManager:
    """Stores the KPI and frameworks/standards catalogues that document tables select from"""

    def __init__(self, catalogue_dir: str = 'catalogue'):
        self.catalogue_dir = catalogue_dir

        # Create catalogue directory if it doesn't exist
        os.makedirs(catalogue_dir, exist_ok=True)

    def _get_file(self, kind: str) -> str:
        return os.path.join(self.catalogue_dir, f'{kind}.json')

    def _load(self, kind: str) -> List[Dict]:
        """Load a catalogue from its JSON file"""
        path = self._get_file(kind)
        if os.path.exists(path):
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                logger.warning("Could not read catalogue %s: %s", path, e)
                return []
        return []

    def _save(self, kind: str, entries: List[Dict]):
        """Save a catalogue to its JSON file"""
        path = self._get_file(kind)
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(entries, f, indent=2, ensure_ascii=False)
        except IOError as e:
            logger.warning("Could not save catalogue %s: %s", path, e)

    def _add(self, kind: str, fields: Dict, data: Dict) -> Dict:
        if not (data.get('name') or '').strip():
            raise ValueError('name is required')

        entry = {'id': data.get('id') or uuid.uuid4().hex}
        for key, default in fields.items():
            entry[key] = data.get(key, default)
        entry['created_at'] = datetime.now().isoformat()

        entries = self._load(kind)
        if any(existing['id'] == entry['id'] for existing in entries):
            raise ValueError(f"id {entry['id']} already exists")
        entries.append(entry)
        self._save(kind, entries)
        return entry

    def _delete(self, kind: str, entry_id: str) -> bool:
        entries = self._load(kind)
        remaining = [e for e in entries if e['id'] != entry_id]
        if len(remaining) == len(entries):
            return False
        self._save(kind, remaining)
        return True

    def get_kpis(self) -> List[Dict]:
        return self._load('kpis')

    def add_kpi(self, data: Dict) -> Dict:
        """Add a KPI; raises ValueError when the name is missing or the id is taken"""
        return self._add('kpis', KPI_FIELDS, data)

    def delete_kpi(self, kpi_id: str) -> bool:
        return self._delete('kpis', kpi_id)

    def get_standards(self) -> List[Dict]:
        return self._load('standards')

    def add_standard(self, data: Dict) -> Dict:
        """Add a framework/standard; raises ValueError when the name is missing or the id is taken"""
        return self._add('standards', STANDARD_FIELDS, data)

    def delete_standard(self, standard_id: str) -> bool:
        return self._delete('standards', standard_id)
