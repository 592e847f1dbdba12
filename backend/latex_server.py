"""
Headless LaTeX Generator server.
Serves the conversion and archive API with waitress.
"""
import sys

from waitress import serve

from app import create_app
from log_config import setup_logger

logger = setup_logger(__name__)


def main():
    port = int(sys.argv[1]) if len(sys.argv) > 1 else 8000
    app = create_app()
    logger.info('LaTeX Generator server starting on http://127.0.0.1:%d', port)
    serve(app, host='127.0.0.1', port=port, _quiet=True)


if __name__ == '__main__':
    main()
