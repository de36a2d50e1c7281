# gunicorn -k eventlet -w 1 wsgi:app
# eventlet must patch the stdlib before Flask-SocketIO and firebase-admin are imported.
try:
    import eventlet  # type: ignore

    eventlet.monkey_patch()
except ImportError:
    pass

from app import app, start_approval_worker

start_approval_worker()
