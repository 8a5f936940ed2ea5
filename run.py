#!/usr/bin/env python3
"""
ReviewFlow backend - main application entry point
"""
from app import create_app
from app.services import init_scheduler
import os

app = create_app()
init_scheduler(app)

if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('DEBUG', 'False').lower() == 'true'

    # The reloader would start a second scheduler in the child process
    app.run(
        host='0.0.0.0',
        port=port,
        debug=debug,
        use_reloader=False
    )
