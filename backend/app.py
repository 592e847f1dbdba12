import io
import os
import re

from flask import Blueprint, Flask, current_app, jsonify, request, send_file, session
from werkzeug.exceptions import HTTPException

from archive_manager import ArchiveManager
from bpmn_parser import extract_metadata_from_bpmn
from bpmn_to_latex import convert_bpmn_to_latex
from catalogue_manager import CatalogueManager
from history_manager import HistoryManager, get_change_description
from latex_builder import strip_extension
from latex_cleaner import clean_latex_content
from log_config import get_app_data_dir, setup_logger

logger = setup_logger(__name__)

DEFAULT_SECRET_KEY = 'latex-generator-secret-key-change-in-production'
DEFAULT_FILE_NAME = 'diagram.bpmn'

# Keys of a conversion request that are passed straight through to the converter
CONVERSION_FIELDS = [
    'process_metadata', 'table_options', 'sign_off_data', 'history_data',
    'trigger_data', 'advanced_details', 'selected_standards', 'selected_kpis'
]

api = Blueprint('api', __name__)


def create_app(data_dir: str = None) -> Flask:
    """Flask app with its archive, history and catalogue stores under data_dir"""
    data_dir = os.path.abspath(data_dir or get_app_data_dir())
    os.makedirs(data_dir, exist_ok=True)

    app = Flask(__name__)
    app.secret_key = os.environ.get('LATEX_GENERATOR_SECRET_KEY', DEFAULT_SECRET_KEY)
    app.config['DATA_DIR'] = data_dir
    app.config['ARCHIVE_MANAGER'] = ArchiveManager(os.path.join(data_dir, 'archives'), os.path.join(data_dir, 'archive.db'))
    app.config['HISTORY_MANAGER'] = HistoryManager(os.path.join(data_dir, 'history'))
    app.config['CATALOGUE_MANAGER'] = CatalogueManager(os.path.join(data_dir, 'catalogue'))

    app.register_blueprint(api)
    app.register_error_handler(Exception, handle_unexpected_error)

    logger.info("LaTeX generator data directory: %s", data_dir)
    return app


def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return jsonify({'error': e.description}), e.code
    logger.exception("Unhandled error on %s", request.path)
    return jsonify({'error': 'Internal server error', 'details': str(e)}), 500


def archives() -> ArchiveManager:
    return current_app.config['ARCHIVE_MANAGER']


def history() -> HistoryManager:
    return current_app.config['HISTORY_MANAGER']


def catalogue() -> CatalogueManager:
    return current_app.config['CATALOGUE_MANAGER']


def _conversion_kwargs(payload: dict) -> dict:
    """Converter keyword arguments from a request payload, catalogues filled from the store"""
    kwargs = {key: payload.get(key) for key in CONVERSION_FIELDS}
    kwargs['standards'] = payload.get('standards') or catalogue().get_standards()
    kwargs['available_kpis'] = payload.get('available_kpis') or catalogue().get_kpis()
    return kwargs


def _owned_archive(archive_id: int):
    """(archive, error response) for the logged-in user"""
    user_id = session.get('user_id', None)
    if not user_id:
        return None, (jsonify({'error': 'No user logged in'}), 401)

    archive = archives().get_archive(archive_id)
    if not archive:
        return None, (jsonify({'error': 'Archive not found'}), 404)
    if archive['user_id'] != user_id:
        return None, (jsonify({'error': 'Not allowed to access this archive'}), 403)
    return archive, None


def _json_payload():
    """JSON object body of the request ({} when absent), None when the body is not an object"""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    return payload if isinstance(payload, dict) else None


def _invalid_payload():
    return jsonify({'error': 'Request body must be a JSON object'}), 400


# --- Conversion ---

@api.route('/api/bpmn/convert', methods=['POST'])
def convert():
    """Convert BPMN XML to LaTeX; ?download=1 returns a .tex attachment"""
    payload = _json_payload()
    if payload is None:
        return _invalid_payload()
    xml = payload.get('xml', '')
    if not isinstance(xml, str) or not xml.strip():
        return jsonify({'error': 'No XML provided'}), 400

    file_name = payload.get('file_name') or DEFAULT_FILE_NAME
    latex = convert_bpmn_to_latex(xml, file_name, **_conversion_kwargs(payload))

    if request.args.get('download'):
        return send_file(
            io.BytesIO(latex.encode('utf-8')),
            mimetype='application/x-tex',
            as_attachment=True,
            download_name=f"{strip_extension(file_name) or 'diagram'}.tex"
        )
    return jsonify({'latex': latex})


@api.route('/api/bpmn/metadata', methods=['POST'])
def extract_metadata():
    """Extract metadata from uploaded BPMN file or posted XML for form auto-population"""
    bpmn_content = None

    # Check for file upload first
    if 'bpmn_file' in request.files:
        file = request.files['bpmn_file']
        if file.filename != '':
            bpmn_content = file.read()

    # Fall back to JSON body
    if not bpmn_content:
        payload = _json_payload() or {}
        xml_code = (payload.get('xml') or '').strip()
        if xml_code:
            bpmn_content = xml_code.encode('utf-8')

    if not bpmn_content:
        return jsonify({'error': 'No BPMN content provided'}), 400

    metadata = extract_metadata_from_bpmn(bpmn_content)
    return jsonify({'success': True, 'metadata': metadata})


# --- User ---

@api.route('/api/user/set', methods=['POST'])
def set_user():
    """Set current user ID in session"""
    data = _json_payload()
    if data is None:
        return _invalid_payload()
    user_id = (data.get('user_id') or '').strip().lower()  # Normalize to lowercase

    if not user_id:
        return jsonify({'error': 'User ID required'}), 400

    # Simple validation - alphanumeric and underscores only
    if not re.match(r'^[a-z0-9_]+$', user_id):
        return jsonify({'error': 'User ID can only contain letters, numbers, and underscores'}), 400

    session['user_id'] = user_id
    return jsonify({'success': True, 'user_id': user_id})


@api.route('/api/user/get', methods=['GET'])
def get_user():
    """Get current user ID from session"""
    return jsonify({'user_id': session.get('user_id', None)})


# --- Catalogue ---

@api.route('/api/kpis', methods=['GET'])
def list_kpis():
    return jsonify({'kpis': catalogue().get_kpis()})


@api.route('/api/kpis', methods=['POST'])
def add_kpi():
    data = _json_payload()
    if data is None:
        return _invalid_payload()
    try:
        kpi = catalogue().add_kpi(data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(kpi), 201


@api.route('/api/kpis/<kpi_id>', methods=['DELETE'])
def delete_kpi(kpi_id):
    if catalogue().delete_kpi(kpi_id):
        return jsonify({'success': True})
    return jsonify({'error': 'KPI not found'}), 404


@api.route('/api/standards', methods=['GET'])
def list_standards():
    return jsonify({'standards': catalogue().get_standards()})


@api.route('/api/standards', methods=['POST'])
def add_standard():
    data = _json_payload()
    if data is None:
        return _invalid_payload()
    try:
        standard = catalogue().add_standard(data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(standard), 201


@api.route('/api/standards/<standard_id>', methods=['DELETE'])
def delete_standard(standard_id):
    if catalogue().delete_standard(standard_id):
        return jsonify({'success': True})
    return jsonify({'error': 'Standard not found'}), 404


# --- Archive ---

@api.route('/api/archive', methods=['GET'])
def list_archives():
    """List archives for current user"""
    user_id = session.get('user_id', None)
    if not user_id:
        return jsonify({'error': 'No user logged in'}), 401
    return jsonify({'archives': archives().get_user_archives(user_id)})


@api.route('/api/archive', methods=['POST'])
def save_archive():
    """Convert a diagram and store both the diagram and its LaTeX"""
    user_id = session.get('user_id', None)
    if not user_id:
        return jsonify({'error': 'No user logged in'}), 401

    payload = _json_payload()
    if payload is None:
        return _invalid_payload()
    xml = payload.get('xml', '')
    if not isinstance(xml, str) or not xml.strip():
        return jsonify({'error': 'No XML provided'}), 400

    file_name = payload.get('file_name') or DEFAULT_FILE_NAME
    name = payload.get('name') or strip_extension(file_name) or 'Untitled Process'
    latex = convert_bpmn_to_latex(xml, file_name, **_conversion_kwargs(payload))

    archive_id = archives().save_archive(
        user_id=user_id,
        name=name,
        file_name=file_name,
        bpmn_xml=xml,
        latex=latex,
        process_metadata=payload.get('process_metadata')
    )
    version = history().add_version(archive_id, latex, user_id=user_id, change_type='save')

    return jsonify({'success': True, 'id': archive_id, 'version': version['version'], 'latex': latex}), 201


@api.route('/api/archive/<int:archive_id>', methods=['GET'])
def get_archive(archive_id):
    archive, error = _owned_archive(archive_id)
    if error:
        return error
    content = archives().get_archive_content(archive_id)
    for key in ('bpmn_path', 'tex_path'):
        content.pop(key, None)
    return jsonify(content)


@api.route('/api/archive/<int:archive_id>', methods=['PUT'])
def update_archive(archive_id):
    """Replace the diagram (re-converting it) or the LaTeX of an archive"""
    archive, error = _owned_archive(archive_id)
    if error:
        return error

    payload = _json_payload()
    if payload is None:
        return _invalid_payload()
    stored = archives().get_archive_content(archive_id)
    xml = payload.get('xml') or stored['bpmn_xml'] or ''

    if payload.get('latex'):
        # Manual edit of the generated document
        latex = clean_latex_content(payload['latex'])
        change_type = 'modification'
    else:
        latex = convert_bpmn_to_latex(xml, archive['file_name'], **_conversion_kwargs(payload))
        change_type = 'save'

    archives().update_archive(
        archive_id,
        archive['user_id'],
        bpmn_xml=payload.get('xml'),
        latex=latex,
        name=payload.get('name'),
        process_metadata=payload.get('process_metadata')
    )

    version = None
    if history().has_meaningful_changes(archive_id, latex):
        version = history().add_version(archive_id, latex, user_id=archive['user_id'], change_type=change_type)['version']

    return jsonify({'success': True, 'id': archive_id, 'version': version, 'latex': latex})


@api.route('/api/archive/<int:archive_id>', methods=['DELETE'])
def delete_archive(archive_id):
    """Delete an archive and its version history"""
    archive, error = _owned_archive(archive_id)
    if error:
        return error

    archives().delete_archive(archive_id, archive['user_id'])
    history().delete_versions(archive_id)
    return jsonify({'success': True, 'message': 'Archive deleted'})


@api.route('/api/archive/<int:archive_id>/export', methods=['GET'])
def export_archive(archive_id):
    """Download the archived diagram and LaTeX as a ZIP"""
    archive, error = _owned_archive(archive_id)
    if error:
        return error

    data = archives().build_export_zip(archive_id)
    base_name = strip_extension(archive['file_name']) or 'diagram'
    return send_file(
        io.BytesIO(data),
        mimetype='application/zip',
        as_attachment=True,
        download_name=f"{base_name}.zip"
    )


@api.route('/api/archive/<int:archive_id>/download/<file_type>', methods=['GET'])
def download_archive_file(archive_id, file_type):
    """Download the archived .bpmn or .tex file"""
    archive, error = _owned_archive(archive_id)
    if error:
        return error

    path = archives().get_file_path(archive_id, file_type)
    if not path:
        return jsonify({'error': f'{file_type} file not found'}), 404

    mimetype = 'application/x-tex' if file_type == 'tex' else 'application/xml'
    return send_file(path, mimetype=mimetype, as_attachment=True, download_name=os.path.basename(path))


# --- Version history ---

@api.route('/api/archive/<int:archive_id>/versions', methods=['GET'])
def list_versions(archive_id):
    archive, error = _owned_archive(archive_id)
    if error:
        return error

    versions = [
        {
            'version': v['version'],
            'timestamp': v['timestamp'],
            'user_id': v.get('user_id'),
            'notes': v.get('notes'),
            'description': get_change_description(v)
        }
        for v in history().get_versions(archive_id)
    ]
    return jsonify({'versions': versions})


@api.route('/api/archive/<int:archive_id>/versions/compare', methods=['GET'])
def compare_versions(archive_id):
    archive, error = _owned_archive(archive_id)
    if error:
        return error

    v1 = request.args.get('v1')
    v2 = request.args.get('v2')
    if not v1 or not v2:
        return jsonify({'error': 'Both v1 and v2 are required'}), 400
    return jsonify(history().compare_versions(archive_id, v1, v2))


@api.route('/api/archive/<int:archive_id>/versions/<version>', methods=['GET'])
def get_version(archive_id, version):
    archive, error = _owned_archive(archive_id)
    if error:
        return error

    entry = history().get_version(archive_id, version)
    if entry:
        return jsonify(entry)
    return jsonify({'error': 'Version not found'}), 404


@api.route('/api/archive/<int:archive_id>/versions/<version>/revert', methods=['POST'])
def revert_version(archive_id, version):
    """Make an older version the current LaTeX of the archive"""
    archive, error = _owned_archive(archive_id)
    if error:
        return error

    entry = history().revert_to_version(archive_id, version)
    if not entry:
        return jsonify({'error': 'Version not found'}), 404

    archives().update_archive(archive_id, archive['user_id'], latex=entry['content'])
    return jsonify({'success': True, 'version': entry['version']})
