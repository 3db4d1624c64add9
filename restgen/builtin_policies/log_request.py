# File: restgen/builtin_policies/log_request.py
"""Log every request that reaches a generated route."""

import logging

logger: logging.Logger = logging.getLogger("restgen.policies.log_request")


def policy(request, schema):
    logger.info("%s %s -> %s", request.method, request.url.path, schema.name)
