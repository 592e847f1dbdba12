"""
LaTeX document assembly for BPMN processes

Renders the process table rows and the user-entered metadata into a single
LaTeX article. Every section after the title is optional and controlled by
a table option flag:

    process_table, process_details_table, frameworks_table, kpi_table,
    sign_off_table, history_table, trigger_table

User text goes through escape_latex exactly once, at the point where it is
placed into a cell or heading. Placeholders ('--', 'Not specified') are
added after escaping.
"""

import re
from typing import List, Dict, Optional

from table_extractor import extract_process_table_data, get_process_name

DEFAULT_TABLE_OPTIONS = {
    'process_table': True,
    'process_details_table': True,
    'frameworks_table': False,
    'kpi_table': False,
    'sign_off_table': False,
    'history_table': False,
    'trigger_table': False
}

NOT_SPECIFIED = 'Not specified'
NO_DESCRIPTION = 'No description available'
EMPTY_CELL = '--'

# Characters with special meaning in LaTeX text and their escaped forms.
# Applied in a single pass so a replacement is never escaped again.
LATEX_ESCAPES = {
    '\\': '\\textbackslash{}',
    '&': '\\&',
    '%': '\\%',
    '$': '\\$',
    '#': '\\#',
    '_': '\\_',
    '{': '\\{',
    '}': '\\}',
    '~': '\\textasciitilde{}',
    '^': '\\textasciicircum{}'
}
_SPECIAL_CHARS = re.compile('[' + re.escape(''.join(LATEX_ESCAPES)) + ']')

ROW_END = ' \\\\\n\\hline\n'


def escape_latex(value) -> str:
    """Escape LaTeX special characters for use inside a table cell or heading"""
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return _SPECIAL_CHARS.sub(lambda m: LATEX_ESCAPES[m.group(0)], str(value))


def strip_extension(file_name: str) -> str:
    return str(file_name or '').replace('.bpmn', '', 1).replace('.xml', '', 1)


def _cell(value, placeholder: str = EMPTY_CELL) -> str:
    if value is None or value == '':
        return placeholder
    return escape_latex(value)


def _row(cells: List[str]) -> str:
    return ' & '.join(cells) + ROW_END


def _header(titles: List[str]) -> str:
    return _row(['\\textbf{' + title + '}' for title in titles])


def _tabular(spec: str, header: Optional[List[str]], rows: List[List[str]]) -> str:
    out = '\\begin{tabular}{' + spec + '}\n\\hline\n'
    if header:
        out += _header(header)
    for cells in rows:
        out += _row(cells)
    out += '\\end{tabular}\n'
    return out


def _section(title: str, body: str) -> str:
    return '\n\\section{' + title + '}\n\n' + body


def render_preamble(file_name: str) -> str:
    title = escape_latex(strip_extension(file_name))
    return (
        '\\documentclass{article}\n'
        '\\usepackage{geometry}\n'
        '\\usepackage{array}\n'
        '\n'
        '\\geometry{margin=1in}\n'
        '\n'
        '\\title{BPMN Process: ' + title + '}\n'
        '\\author{Generated from BPMN}\n'
        '\\date{\\today}\n'
        '\n'
        '\\begin{document}\n'
        '\n'
        '\\maketitle\n'
    )


def render_process_table(process_name: str, table_data: List[Dict]) -> str:
    rows = [
        [
            escape_latex(row['step_seq']),
            _cell(row['process_name']),
            _cell(row['task']),
            _cell(row['procedure']),
            _cell(row['tools_references']),
            _cell(row['role'])
        ]
        for row in table_data
    ]
    body = _tabular(
        '|c|c|c|c|c|c|',
        ['Step', 'Process', 'Task', 'Procedure', 'Tools/Refs', 'Role'],
        rows
    )
    return _section(escape_latex(process_name) + ' Table', body)


def render_process_details(metadata: Dict, advanced_details: Optional[Dict]) -> str:
    advanced = advanced_details or {}
    fields = [
        ('Process Name', metadata.get('process_name'), NOT_SPECIFIED),
        ('Description', metadata.get('description'), NO_DESCRIPTION),
        ('Process Owner', metadata.get('process_owner'), NOT_SPECIFIED),
        ('Process Manager', metadata.get('process_manager'), NOT_SPECIFIED),
        ('Version No', advanced.get('version_no'), NOT_SPECIFIED),
        ('Classification', advanced.get('classification'), NOT_SPECIFIED),
        ('Process Status', advanced.get('process_status'), NOT_SPECIFIED),
        ('Effective Date', advanced.get('effective_date'), NOT_SPECIFIED),
        ('Review Date', advanced.get('date_of_review'), NOT_SPECIFIED),
    ]
    rows = [['\\textbf{' + label + '}', _cell(value, placeholder)] for label, value, placeholder in fields]
    return _section('Process Details', _tabular('|l|l|', None, rows))


def select_by_ids(catalogue: Optional[List[Dict]], selected_ids: Optional[List[str]]) -> List[Dict]:
    """Catalogue entries whose id was selected, in catalogue order"""
    if not catalogue or not selected_ids:
        return []
    wanted = set(selected_ids)
    return [entry for entry in catalogue if entry.get('id') in wanted]


def render_frameworks_table(standards: List[Dict]) -> str:
    rows = [[_cell(s.get('name')), _cell(s.get('description'))] for s in standards]
    body = _tabular('|l|l|', ['Reference', 'Reference Description'], rows)
    return _section('Frameworks and Standards', body)


def _kpi_row(kpi: Dict) -> List[str]:
    target = '{} {}'.format(escape_latex(kpi.get('target', '')), escape_latex(kpi.get('unit', ''))).strip()
    associated = kpi.get('associated_bpmn_processes') or []
    return [
        _cell(kpi.get('type')),
        _cell(kpi.get('name')),
        _cell(kpi.get('description')),
        _cell(kpi.get('direction')),
        target or EMPTY_CELL,
        _cell(kpi.get('frequency') or 'Monthly'),
        _cell(kpi.get('receiver')),
        _cell(kpi.get('source')),
        'Yes' if kpi.get('active') else 'No',
        _cell(kpi.get('mode') or 'Manual'),
        _cell(kpi.get('tag')),
        _cell(kpi.get('category')),
        str(len(associated))
    ]


def render_kpi_table(kpis: List[Dict]) -> str:
    header = [
        'Type of KPI', 'KPI', 'Formula', 'KPI Direction', 'Target Value', 'Frequency',
        'Receiver', 'Source', 'Active', 'Mode', 'Tag', 'Category', 'Associated BPMN Processes'
    ]
    body = _tabular('|' + 'l|' * len(header), header, [_kpi_row(kpi) for kpi in kpis])
    return _section('Associated KPIs', body)


def render_sign_off_table(sign_off: Dict) -> str:
    keys = ['responsibility', 'date', 'name', 'designation', 'signature']
    body = _tabular(
        '|c|c|c|c|c|',
        ['Responsibility', 'Date', 'Name', 'Designation', 'Signature'],
        [[_cell(sign_off.get(key)) for key in keys]]
    )
    return _section('Sign OFF Table', body)


def render_history_table(history: Dict) -> str:
    keys = ['version_no', 'date', 'status_remarks', 'author']
    body = _tabular(
        '|c|c|c|c|',
        ['Version No', 'Date', 'Status/Remarks', 'Author'],
        [[_cell(history.get(key)) for key in keys]]
    )
    return _section('History Table', body)


def render_trigger_table(trigger: Dict) -> str:
    keys = ['triggers', 'inputs', 'outputs']
    body = _tabular(
        '|c|c|c|',
        ['Triggers', 'Inputs', 'Outputs'],
        [[_cell(trigger.get(key)) for key in keys]]
    )
    return _section('Trigger Table', body)


def generate_latex_document(
    elements: List[Dict],
    lanes: List[Dict],
    file_name: str,
    process_metadata: Optional[Dict] = None,
    table_options: Optional[Dict] = None,
    sign_off_data: Optional[Dict] = None,
    history_data: Optional[Dict] = None,
    trigger_data: Optional[Dict] = None,
    advanced_details: Optional[Dict] = None,
    selected_standards: Optional[List[str]] = None,
    standards: Optional[List[Dict]] = None,
    selected_kpis: Optional[List[str]] = None,
    available_kpis: Optional[List[Dict]] = None
) -> str:
    """Assemble the complete LaTeX document from parsed diagram records and metadata"""
    table_data = extract_process_table_data(elements, lanes)
    process_name = get_process_name(elements, lanes)

    metadata = process_metadata or {
        'process_name': process_name,
        'description': NO_DESCRIPTION,
        'process_owner': NOT_SPECIFIED,
        'process_manager': NOT_SPECIFIED
    }
    options = DEFAULT_TABLE_OPTIONS if table_options is None else table_options

    latex = render_preamble(file_name)

    if options.get('process_table'):
        latex += render_process_table(process_name, table_data)

    if options.get('process_details_table'):
        latex += render_process_details(metadata, advanced_details)

    if options.get('frameworks_table'):
        chosen = select_by_ids(standards, selected_standards)
        if chosen:
            latex += render_frameworks_table(chosen)

    if options.get('kpi_table'):
        chosen = select_by_ids(available_kpis, selected_kpis)
        if chosen:
            latex += render_kpi_table(chosen)

    if options.get('sign_off_table') and sign_off_data:
        latex += render_sign_off_table(sign_off_data)

    if options.get('history_table') and history_data:
        latex += render_history_table(history_data)

    if options.get('trigger_table') and trigger_data:
        latex += render_trigger_table(trigger_data)

    latex += '\n\\end{document}'
    return latex
