"""Document paths of the campaign data layout."""

CAMPAIGNS_COLLECTION = "apps"
INVITES_COLLECTION = "invites"


def campaign_path(campaign_id: str) -> str:
    return f"{CAMPAIGNS_COLLECTION}/{campaign_id}"


def settings_path(campaign_id: str) -> str:
    return f"{campaign_path(campaign_id)}/meta/settings"


def members_collection(campaign_id: str) -> str:
    return f"{campaign_path(campaign_id)}/users"


def member_path(campaign_id: str, user_id: str) -> str:
    return f"{members_collection(campaign_id)}/{user_id}"


def availability_collection(campaign_id: str) -> str:
    return f"{campaign_path(campaign_id)}/availability"


def availability_path(campaign_id: str, user_id: str) -> str:
    return f"{availability_collection(campaign_id)}/{user_id}"


def invite_path(code: str) -> str:
    return f"{INVITES_COLLECTION}/{code}"
