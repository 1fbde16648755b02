from .db import (
    get_engine,
    fetch_group_members,
    fetch_member,
    fetch_latest_unregistered_member,
    fetch_unregistered_members,
    fetch_push_tokens,
    fetch_profile,
    fetch_group,
    fetch_groups_by_draw_dates,
    claim_reminder_slot,
    release_reminder_slot,
    dispose_engine,
)  # noqa: F401
