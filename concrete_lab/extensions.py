"""Flask extensions initialization."""
from flask_sqlalchemy import SQLAlchemy

# Database (local key/value store for form drafts)
db = SQLAlchemy()
