"""Global constants for the happypoints application."""

# Collection names
USERS = "users"
TRANSACTIONS = "transactions"
GROUPS = "groups"
GROUP_MEMBERS = "groupMembers"
GROUP_TASKS = "groupTasks"
TASK_COMPLETIONS = "taskCompletions"
GROUP_PENALTY_TYPES = "groupPenaltyTypes"
GROUP_PENALTIES = "groupPenalties"
GROUP_PRIZES = "groupPrizes"
GROUP_PRIZE_REDEMPTIONS = "groupPrizeRedemptions"
GROUP_JOIN_REQUESTS = "groupJoinRequests"
GROUP_INVITATIONS = "groupInvitations"

# Points
INITIAL_POINTS = 0

# Pagination
DEFAULT_LIMIT = 10
TRANSACTIONS_LIMIT = 5
MAX_PAGE_LIMIT = 100

# Groups
GROUP_CODE_LENGTH = 6
DEFAULT_MAX_MEMBERS = 10
MAX_MEMBERS = 50
INVITATION_EXPIRY_DAYS = 7

# Descriptions and placeholders
UNKNOWN_TASK_TITLE = "Unknown Task"
NO_REASON_PROVIDED = "No reason provided"
