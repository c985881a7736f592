"""
PartnerHub — Blueprint helpers.

Every API blueprint calls ``register_error_handlers`` once at import time
and lists through ``paginate_query`` where the collection can grow.
"""

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from partnerhub.core.exceptions import PartnerHubError

logger = logging.getLogger(__name__)


def _int_arg(name, default, minimum=0):
    try:
        return max(int(request.args.get(name, default)), minimum)
    except (TypeError, ValueError):
        return default


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply ``?limit=`` / ``?offset=`` to a SQLAlchemy query.

    Returns:
        (items_list, total_count) where total ignores the page window.
    """
    total = query.count()
    limit = min(_int_arg("limit", default_limit, minimum=1), max_limit)
    offset = _int_arg("offset", 0)
    return query.limit(limit).offset(offset).all(), total


def register_error_handlers(bp):
    """Serialise service errors for ``bp``; anything unexpected becomes a logged 500."""

    @bp.errorhandler(PartnerHubError)
    def _handle_service_error(error: PartnerHubError):
        if error.status_code >= 500:
            logger.error("%s in %s: %s", type(error).__name__, request.endpoint, error)
        return jsonify(error.to_dict()), error.status_code

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unhandled error in %s endpoint=%s", bp.name, request.endpoint)
        return jsonify({"error": "Internal server error"}), 500

    return bp
