"""
service.py - Request/response entry point

    {"action": "collect",   "subjectIdentifier": "8.8.8.8"} -> runs every source
    {"action": "getStored", "subjectIdentifier": "8.8.8.8"} -> reads Redis only

Answers {"success": true, "data": <report>} or {"success": false, "error": "..."}.
The identifier is validated before anything touches the browser.
"""

import logging
from typing import Optional, Union

from pydantic import ValidationError

from .errors import InvalidRequestError
from .models import MessageRequest, MessageResponse, is_valid_ip
from .orchestrator import Orchestrator
from .storage import ReportStore

logger = logging.getLogger(__name__)

ACTION_COLLECT = "collect"
ACTION_GET_STORED = "getStored"
ACTIONS = (ACTION_COLLECT, ACTION_GET_STORED)


def parse_request(request: Union[dict, MessageRequest]) -> MessageRequest:
    """
    Validate an incoming request.

    Raises:
        InvalidRequestError: unknown action, missing or malformed IP.
    """
    if not isinstance(request, MessageRequest):
        try:
            request = MessageRequest.model_validate(request)
        except ValidationError:
            raise InvalidRequestError("Invalid request") from None

    if request.action not in ACTIONS:
        raise InvalidRequestError(f"Unknown action: {request.action}")
    if not request.subject_identifier:
        raise InvalidRequestError("IP address is required")
    if not is_valid_ip(request.subject_identifier):
        raise InvalidRequestError("Invalid IP address format")
    return request


def _respond(response: MessageResponse) -> dict:
    return response.model_dump(mode="json", exclude={"error"} if response.success else {"data"})


async def handle_request(request: Union[dict, MessageRequest],
                         orchestrator: Optional[Orchestrator] = None,
                         store: Optional[ReportStore] = None) -> dict:
    try:
        request = parse_request(request)
    except InvalidRequestError as e:
        logger.warning(f"Rejected request: {e}")
        return _respond(MessageResponse(success=False, error=str(e)))

    ip = request.subject_identifier

    if request.action == ACTION_GET_STORED:
        if store is None:
            return _respond(MessageResponse(success=False, error="Storage is not configured"))
        try:
            report = await store.load(ip)
        except Exception as e:
            logger.error(f"Failed to load report for {ip}: {e}")
            return _respond(MessageResponse(success=False, error=f"Storage error: {e}"))
        return _respond(MessageResponse(success=True, data=report))

    if orchestrator is None:
        return _respond(MessageResponse(success=False, error="Browser is not connected"))
    report = await orchestrator.run(ip)
    return _respond(MessageResponse(success=True, data=report))
