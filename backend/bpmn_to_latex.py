"""
BPMN to LaTeX conversion
Parses a BPMN diagram and renders it as a LaTeX document with process tables
"""

from typing import List, Dict, Optional, Union

from bpmn_parser import parse_bpmn
from latex_builder import generate_latex_document, escape_latex, strip_extension
from log_config import setup_logger

logger = setup_logger(__name__)


def convert_bpmn_to_latex(
    bpmn_xml: Union[str, bytes],
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
    """
    Main conversion function
    Always returns a complete document: the generated one, or the error
    document when the diagram cannot be parsed or rendered
    """
    try:
        parsed = parse_bpmn(bpmn_xml)
        return generate_latex_document(
            parsed['elements'],
            parsed['lanes'],
            file_name,
            process_metadata=process_metadata,
            table_options=table_options,
            sign_off_data=sign_off_data,
            history_data=history_data,
            trigger_data=trigger_data,
            advanced_details=advanced_details,
            selected_standards=selected_standards,
            standards=standards,
            selected_kpis=selected_kpis,
            available_kpis=available_kpis
        )
    except Exception:
        preview = bpmn_xml[:500] if bpmn_xml else ''
        logger.exception("Error converting BPMN to LaTeX (%s). Input starts with: %r", file_name, preview)
        return generate_error_latex(file_name)


def generate_error_latex(file_name: str) -> str:
    """Fallback document with a visible error notice"""
    title = escape_latex(strip_extension(file_name))
    shown_name = escape_latex(file_name)
    return (
        '\\documentclass{article}\n'
        '\\usepackage{tikz}\n'
        '\\usepackage{geometry}\n'
        '\n'
        '\\geometry{margin=1in}\n'
        '\n'
        '\\title{BPMN Diagram: ' + title + '}\n'
        '\\author{Generated from BPMN}\n'
        '\\date{\\today}\n'
        '\n'
        '\\begin{document}\n'
        '\n'
        '\\maketitle\n'
        '\n'
        '\\section{Error in BPMN Conversion}\n'
        '\n'
        '\\begin{center}\n'
        '\\begin{tikzpicture}\n'
        '\\node[rectangle, draw=red, fill=red!10, minimum width=4cm, minimum height=2cm] at (0,0) {\n'
        '    \\textbf{Error: Could not parse BPMN diagram}\n'
        '};\n'
        '\\end{tikzpicture}\n'
        '\\end{center}\n'
        '\n'
        '\\paragraph{Note:} The BPMN diagram ' + shown_name + ' could not be converted to LaTeX. '
        'Please check that the BPMN file is valid and contains proper elements.\n'
        '\n'
        '\\end{document}'
    )
