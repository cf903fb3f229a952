from .base import Base
from .user import User
from .event import Event, EventRegistration, RegistrationStatus
from .team import Team, TeamStatus
from .membership import TeamMembership, MembershipRole, MembershipStatus
from .join_request import JoinRequest, JoinRequestStatus
from .invitation import Invitation, InvitationStatus
