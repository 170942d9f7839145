"""Compression test entry blueprint.

JSON endpoints driving the server-side form session: field edits, row
management, reception lookup, sample import and submission.
"""
from flask import Blueprint

compression_bp = Blueprint('compression', __name__)

from . import routes  # noqa: F401, E402
