"""Inbound debate request schema and validation."""

import logging
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from hippodrome.models import DebateRequest, Participant, TransportKind

logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 2


class RequestError(Exception):
    """Raised for requests rejected before any orchestration starts."""


class InvalidRequest(RequestError):
    pass


class MissingCredential(RequestError):
    pass


class ParticipantBody(BaseModel):
    identifier: str = Field(
        min_length=1,
        validation_alias=AliasChoices("identifier", "id"),
        description="Model identifier, e.g. 'google/gemma-3-27b-it'",
    )
    transport: TransportKind = Field(
        default=TransportKind.BUFFERED,
        validation_alias=AliasChoices("transport", "transportKind"),
    )


class DebateRequestBody(BaseModel):
    """Body of POST /api/debate. 'prompt', 'models' and 'id' are accepted as aliases."""

    topic: str = Field(validation_alias=AliasChoices("topic", "prompt"))
    participants: list[ParticipantBody] = Field(
        validation_alias=AliasChoices("participants", "models"),
    )
    credential: str | None = None


def parse_request(
    payload: Any,
    header_credential: str | None = None,
    env_credential: str | None = None,
) -> DebateRequest:
    """Validate a raw JSON payload into a DebateRequest.

    The credential comes from the body, then the header, then the
    process-wide setting.

    Raises:
        InvalidRequest: Malformed body, empty topic, fewer than two participants
            or two participants sharing a display name.
        MissingCredential: No credential from any source.
    """
    try:
        body = DebateRequestBody.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Rejected malformed debate request: %d error(s)", exc.error_count())
        raise InvalidRequest("Invalid request") from exc

    topic = body.topic.strip()
    blank_ids = any(not p.identifier.strip() for p in body.participants)
    if not topic or blank_ids or len(body.participants) < MIN_PARTICIPANTS:
        logger.warning(
            "Rejected debate request: topic=%s, %d participant(s)",
            bool(topic),
            len(body.participants),
        )
        raise InvalidRequest("Invalid request")

    participants = [
        Participant(identifier=p.identifier.strip(), transport_kind=p.transport)
        for p in body.participants
    ]
    # Debate state is keyed by display name.
    names = [p.display_name for p in participants]
    if len(set(names)) != len(names):
        logger.warning("Rejected debate request: duplicate participant names %s", names)
        raise InvalidRequest("Invalid request")

    credential = next(
        (c.strip() for c in (body.credential, header_credential, env_credential) if c and c.strip()),
        None,
    )
    if credential is None:
        raise MissingCredential("OpenRouter API key is required")

    return DebateRequest(topic=topic, participants=participants, credential=credential)
