#!/usr/bin/env python3
"""Application entry point."""
import os
from concrete_lab import create_app, db
from concrete_lab.models import DraftEntry

# Get config from environment or use development
config_name = os.environ.get('FLASK_CONFIG') or 'development'
app = create_app(config_name)


@app.shell_context_processor
def make_shell_context():
    """Make database and models available in flask shell."""
    return {'db': db, 'DraftEntry': DraftEntry}


@app.cli.command()
def init_db():
    """Initialize the database."""
    db.create_all()
    print('Database initialized!')


@app.cli.command()
def clear_draft():
    """Remove the saved compression form draft."""
    entry = db.session.get(DraftEntry, app.config['DRAFT_STORAGE_KEY'])
    if entry is None:
        print('No saved draft.')
        return
    db.session.delete(entry)
    db.session.commit()
    print('Saved draft removed.')


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5001, debug=True)
