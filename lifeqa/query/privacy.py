"""
Privacy Filter

Circle queries only. Effective sharing is the per-category AND of the
circle's policy and the owner's own settings toward the viewer:

    effective(category) = circle.data_sharing(category) AND friend(category)

Fragments the querying user owns are always kept. Missing friend settings
deny everything. Data types with no sharing category are denied.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..common.schemas import (
    Circle,
    DataType,
    FriendPrivacySettings,
    RetrievedFragment,
    SharingPolicy,
)

logger = logging.getLogger("lifeqa.query.privacy")

# data type -> SharingPolicy flag
DATA_TYPE_FLAGS: Dict[str, str] = {
    DataType.HEALTH.value: "share_health",
    DataType.LOCATION.value: "share_location",
    DataType.SHARED_ACTIVITY.value: "share_activities",
    DataType.VOICE.value: "share_voice_notes",
    DataType.PHOTO.value: "share_photos",
}

SHARING_FLAGS = tuple(SharingPolicy.model_fields)

# flag -> human label for restricted-sharing notices
_FLAG_LABELS = {
    "share_health": "Health",
    "share_location": "Locations",
    "share_activities": "Activities",
    "share_voice_notes": "Voice Notes",
    "share_photos": "Photos",
}

# Matches no stored fragment
NO_MATCH_FILTER = {"dataType": {"$eq": "none"}}


def compute_effective_sharing(
    circle_policy: SharingPolicy,
    friend_settings: Optional[FriendPrivacySettings],
) -> SharingPolicy:
    """Category-wise AND of circle policy and friend settings"""
    friend_settings = friend_settings or FriendPrivacySettings()
    return SharingPolicy(**{
        flag: getattr(circle_policy, flag) and getattr(friend_settings, flag)
        for flag in SHARING_FLAGS
    })


def is_type_permitted(data_type: str, policy: SharingPolicy) -> bool:
    flag = DATA_TYPE_FLAGS.get(data_type)
    if flag is None:
        return False
    return getattr(policy, flag)


def is_permitted(
    fragment: RetrievedFragment,
    viewer_id: str,
    circle: Circle,
    privacy_settings: Mapping[str, FriendPrivacySettings],
) -> bool:
    """Whether the viewer may see one fragment inside this circle"""
    if fragment.owner_user_id == viewer_id:
        return True

    effective = compute_effective_sharing(
        circle.data_sharing,
        privacy_settings.get(fragment.owner_user_id),
    )
    return is_type_permitted(fragment.data_type, effective)


def filter_fragments(
    fragments: Iterable[RetrievedFragment],
    viewer_id: str,
    circle: Circle,
    privacy_settings: Mapping[str, FriendPrivacySettings],
) -> List[RetrievedFragment]:
    """
    Drop fragments the effective sharing policy does not permit.

    Order of the kept fragments is preserved. Neither the circle nor the
    settings are modified.
    """
    fragments = list(fragments)
    kept = [
        f for f in fragments
        if is_permitted(f, viewer_id, circle, privacy_settings)
    ]
    if len(kept) != len(fragments):
        logger.debug(
            "Privacy filter removed %d of %d fragments in circle %s",
            len(fragments) - len(kept), len(fragments), circle.id,
        )
    return kept


def build_circle_filter(policy: SharingPolicy) -> Dict[str, Any]:
    """Coarse vector-store filter: only types the circle policy allows at all"""
    allowed = [
        data_type for data_type, flag in DATA_TYPE_FLAGS.items()
        if getattr(policy, flag)
    ]
    if not allowed:
        return dict(NO_MATCH_FILTER)
    return {"dataType": {"$in": allowed}}


def restricted_data_types(
    circle_policy: SharingPolicy,
    friend_settings: Optional[FriendPrivacySettings],
) -> List[str]:
    """Shareable categories the circle allows but the friend's own settings deny"""
    friend_settings = friend_settings or FriendPrivacySettings()
    return [
        flag for flag in _FLAG_LABELS
        if getattr(circle_policy, flag) and not getattr(friend_settings, flag)
    ]


def has_restricted_sharing(
    circle_policy: SharingPolicy,
    friend_settings: Optional[FriendPrivacySettings],
) -> bool:
    return bool(restricted_data_types(circle_policy, friend_settings))


def restricted_sharing_descriptions(
    circle_policy: SharingPolicy,
    friend_settings: Optional[FriendPrivacySettings],
    friend_name: str,
) -> List[str]:
    """
    Human-readable notices, e.g. "Health (limited by your settings for Bo)".
    """
    return [
        f"{_FLAG_LABELS[flag]} (limited by your settings for {friend_name})"
        for flag in restricted_data_types(circle_policy, friend_settings)
    ]


def default_privacy_settings() -> FriendPrivacySettings:
    """
    Settings for a newly created friendship: everything shared.

    Not a fallback for missing settings; those deny everything.
    """
    return FriendPrivacySettings(**{flag: True for flag in SHARING_FLAGS})
