"""Domain error taxonomy.

Every error carries a stable machine-readable ``code`` and a human-readable
message. The HTTP layer maps the kind to a status code; core code never
touches HTTP.
"""

from __future__ import annotations


class QuestError(Exception):
    """Base class for all expected, user-visible failures."""

    status_code: int = 400
    code: str = "ERROR"
    message: str = "Request failed"

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.message
        if code is not None:
            self.code = code
        super().__init__(self.message)


# --- Kinds ---


class ValidationFailed(QuestError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid input"


class NotFound(QuestError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Not found"


class Conflict(QuestError):
    status_code = 409
    code = "CONFLICT"
    message = "Conflict"


class Forbidden(QuestError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Forbidden"


class ConfigurationFault(QuestError):
    """Operator misconfiguration. Not user-fixable and not retryable."""

    status_code = 500
    code = "CONFIGURATION_ERROR"
    message = "Server is misconfigured"


# --- Identity ---


class NoInitialRankConfigured(ConfigurationFault):
    code = "NO_INITIAL_RANK"
    message = "Initial rank not configured in the system. Cannot create new user."


class UserDeactivated(Forbidden):
    code = "USER_DEACTIVATED"
    message = "This account has been deactivated."


# --- Admission ---


class InvalidActivationCode(ValidationFailed):
    code = "INVALID_ACTIVATION_CODE"
    message = "A valid 6-digit activation code is required."


class CampaignNotFound(NotFound):
    code = "CAMPAIGN_NOT_FOUND"
    message = "Campaign not found or activation code is invalid."


class CampaignNotActive(ValidationFailed):
    code = "CAMPAIGN_NOT_ACTIVE"
    message = "This campaign is not currently active."


class CampaignNotStarted(ValidationFailed):
    code = "CAMPAIGN_NOT_STARTED"
    message = "This campaign has not started yet."


class CampaignEnded(ValidationFailed):
    code = "CAMPAIGN_ENDED"
    message = "This campaign has already ended."


class AlreadyJoined(Conflict):
    code = "ALREADY_JOINED"
    message = "You have already joined this campaign."


class CampaignFull(ValidationFailed):
    code = "CAMPAIGN_FULL"
    message = "This campaign has reached its maximum number of participants."


class CampaignHasMissions(Conflict):
    code = "CAMPAIGN_HAS_MISSIONS"
    message = "Cannot delete a campaign that still has missions."


# --- Missions / completions ---


class MissionNotFound(NotFound):
    code = "MISSION_NOT_FOUND"
    message = "Mission not found."


class InvalidCompletionCode(NotFound):
    code = "INVALID_CODE"
    message = "Invalid or expired completion code."


class InvalidMissionType(ValidationFailed):
    code = "INVALID_MISSION_TYPE"
    message = "This mission does not accept this kind of submission."


class CampaignNotJoined(Forbidden):
    code = "CAMPAIGN_NOT_JOINED"
    message = "You are not a participant in the campaign for this mission."


class MissionLocked(Forbidden):
    code = "MISSION_LOCKED"
    message = "This mission is locked for you."


class AlreadyCompleted(Conflict):
    code = "ALREADY_COMPLETED"
    message = "You have already completed this mission."


class SubmissionPending(Conflict):
    code = "SUBMISSION_EXISTS"
    message = "You already have a submission awaiting review for this mission."


class CompletionNotFound(NotFound):
    code = "COMPLETION_NOT_FOUND"
    message = "Completion not found."


class CompletionAlreadyApproved(Conflict):
    code = "COMPLETION_ALREADY_APPROVED"
    message = "An approved completion cannot be rejected."


class MissionHasCompletions(Conflict):
    code = "MISSION_HAS_COMPLETIONS"
    message = "Cannot delete a mission that already has completions."


# --- Achievements ---


class AchievementNotFound(NotFound):
    code = "ACHIEVEMENT_NOT_FOUND"
    message = "Achievement not found."


class AchievementAlreadyGranted(Conflict):
    code = "ACHIEVEMENT_IN_USE"
    message = "Cannot delete an achievement that has been granted to users."


class MalformedUnlockConditions(ValueError):
    """Raised when stored unlock conditions cannot be parsed.

    A plain ``ValueError``: it signals bad stored data, never bad user input.
    """


# --- Competencies ---


class CompetencyNotFound(NotFound):
    code = "COMPETENCY_NOT_FOUND"
    message = "Competency not found."


class CompetencyNameConflict(Conflict):
    code = "COMPETENCY_NAME_CONFLICT"
    message = "A competency with this name already exists."


class CompetencyInUse(Conflict):
    code = "COMPETENCY_IN_USE"
    message = "Cannot delete a competency that users have progress in."


# --- Store ---


class StoreItemNotFound(NotFound):
    code = "STORE_ITEM_NOT_FOUND"
    message = "Store item not found."
