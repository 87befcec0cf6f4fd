#!/usr/bin/env python3
"""
Development server runner for the training traceability app.

Usage:
    python run_server.py           # Run with default settings
    python run_server.py --debug   # Run in debug mode
    python run_server.py --port 8000  # Run on custom port

Environment Variables:
    PORT         - Server port (default: 5000)
    FLASK_DEBUG  - Enable debug mode (default: False)
    DATABASE_URL, SECRET_KEY, AUTH_USERNAME, AUTH_PASSWORD, APP_DOMAIN - see config.py
"""
import argparse
import logging
import os
import sys


def main(argv=None):
    parser = argparse.ArgumentParser(description='Run the training traceability Flask app')
    parser.add_argument('--port', type=int, default=None, help='Port to run on')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    parser.add_argument('--host', default='127.0.0.1', help='Host to bind to')
    args = parser.parse_args(argv)

    from app import create_app

    app = create_app()
    port = args.port or int(os.environ.get('PORT', 5000))
    debug = args.debug or os.environ.get('FLASK_DEBUG', 'False').lower() in ('true', '1', 'yes', 'on')

    logging.info(f'[SERVER] Starting on http://{args.host}:{port} (debug={debug})')
    try:
        app.run(host=args.host, port=port, debug=debug, use_reloader=debug)
    except KeyboardInterrupt:
        logging.info('[SERVER] Stopped by user')
    return 0


if __name__ == '__main__':
    sys.exit(main())
