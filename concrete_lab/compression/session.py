"""Per-application form session.

The draft is persisted under one well-known key, so the app holds a
single ``FormSession``; concurrent operators would share it.
"""
from flask import current_app

from concrete_lab.services import (
    DatabaseKeyValueStore, DraftStore, FormSession, ReceptionClient,
)

EXTENSION_KEY = 'compression_form'


def init_form_session(app, client=None):
    """Create the app's form session, replacing (and closing) any previous one."""
    store = DraftStore(
        DatabaseKeyValueStore(app),
        delay=app.config.get('DRAFT_DEBOUNCE_SECONDS', 1.0),
    )
    if client is None:
        client = ReceptionClient(
            base_url=app.config.get('LAB_API_URL'),
            timeout=app.config.get('LAB_API_TIMEOUT', 10),
        )
    session = FormSession(store, client, app.config['DRAFT_STORAGE_KEY'])

    previous = app.extensions.get(EXTENSION_KEY)
    if previous is not None:
        previous.close()
    app.extensions[EXTENSION_KEY] = session
    return session


def get_form_session() -> FormSession:
    """The app's form session, with its saved draft restored on first use."""
    session = current_app.extensions[EXTENSION_KEY]
    session.start()
    return session
