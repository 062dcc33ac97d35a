"""Action gateway: typed collaborator calls with mock and live modes."""

from hireloop.gateway.actions import (
    CreateMeeting,
    DraftOutreach,
    EnrichLeads,
    Err,
    ErrorKind,
    Ok,
    ScoreResume,
    SearchLeads,
    SendOutreach,
)
from hireloop.gateway.gateway import ActionGateway
