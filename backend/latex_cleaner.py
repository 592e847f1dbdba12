import re

SECTION_COMMANDS = ['section', 'subsection', 'subsubsection', 'paragraph', 'subparagraph']

# \section{Title}text -> \section{Title}\ntext
_COMMAND_WITHOUT_BREAK = re.compile(
    r'(\\(?:' + '|'.join(SECTION_COMMANDS) + r')\{[^}]*\})([^\n])'
)


def clean_latex_content(content: str) -> str:
    """Put a line break after every sectioning command so editors see one command per line"""
    if not content:
        return ''
    return _COMMAND_WITHOUT_BREAK.sub(r'\1\n\2', content)
