import eventlet
eventlet.monkey_patch()

import os
import sys
import logging

logging.basicConfig(
    level=logging.INFO,
    format='[%(levelname)s] %(name)s: %(message)s',
    stream=sys.stdout
)

from fleetscope.main import create_app


def run():
    app = create_app({'SOCKETIO_ASYNC_MODE': 'eventlet'})
    socketio = app.extensions['socketio']
    port = int(os.environ.get('PORT', 5000))
    logging.getLogger(__name__).info("FleetScope listening on port %d", port)
    socketio.run(app, host='0.0.0.0', port=port)


if __name__ == '__main__':
    run()
