"""Message formatters for update announcements."""

from typing import Optional

from switchdex.models import Category, ConsensusResult, TrackedEntity

CATEGORY_LABELS = {
    Category.GAME: "Game update",
    Category.APPLICATION: "Homebrew update",
    Category.FIRMWARE: "Firmware / bootloader update",
    Category.USER_REPOSITORY: "Repository release",
}

CATEGORY_ICONS = {
    Category.GAME: "🎮",
    Category.APPLICATION: "🧰",
    Category.FIRMWARE: "⚙️",
    Category.USER_REPOSITORY: "📦",
}

# Discord rejects messages over 2000 characters
MAX_MESSAGE_LENGTH = 2000
NOTES_PREVIEW_CHARS = 300


def role_mention(role_id: Optional[str]) -> str:
    return f"<@&{role_id}>" if role_id else ""


def format_update_message(
    entity: TrackedEntity,
    from_version: Optional[str],
    to_version: str,
    consensus: Optional[ConsensusResult] = None,
    mention_role: Optional[str] = None,
) -> str:
    """
    Format a version change announcement.

    Args:
        entity: Entity that changed
        from_version: Previously stored version (None on first sighting)
        to_version: New version
        consensus: Resolver output, used for release date, URL, notes and sources
        mention_role: Optional role to mention ahead of the message

    Returns:
        Message content
    """
    icon = CATEGORY_ICONS.get(entity.category, "🔔")
    label = CATEGORY_LABELS.get(entity.category, "Update")

    lines = []
    mention = role_mention(mention_role)
    if mention:
        lines.append(mention)

    if from_version:
        lines.append(f"{icon} **{entity.name}** {label}: `{from_version}` → `{to_version}`")
    else:
        lines.append(f"{icon} **{entity.name}** {label}: `{to_version}`")

    if consensus is not None:
        best = consensus.best_candidate
        if best.release_date:
            lines.append(f"Released: {best.release_date}")
        lines.append(
            f"Sources: {', '.join(consensus.sources)} "
            f"(confidence {consensus.total_confidence:.2f})"
        )
        if best.notes:
            notes = best.notes.strip()
            if len(notes) > NOTES_PREVIEW_CHARS:
                notes = notes[:NOTES_PREVIEW_CHARS].rstrip() + "…"
            lines.append(f"> {notes}".replace("\n", "\n> "))
        if best.url:
            lines.append(best.url)

    content = "\n".join(lines)
    if len(content) > MAX_MESSAGE_LENGTH:
        content = content[:MAX_MESSAGE_LENGTH - 1] + "…"
    return content


def format_operator_alert(signature: str, message: str) -> str:
    """Format an operator alert for the log channel."""
    content = f"⚠️ **SwitchDex alert** `{signature}`\n{message}"
    if len(content) > MAX_MESSAGE_LENGTH:
        content = content[:MAX_MESSAGE_LENGTH - 1] + "…"
    return content


def format_pass_summary(summary) -> str:
    """One-line summary of a scan pass for operators."""
    duration = summary.duration_seconds
    took = f" in {duration:.0f}s" if duration is not None else ""
    text = (
        f"Scan ({summary.trigger}) finished{took}: {summary.checked} checked, "
        f"{summary.updated} updated, {summary.suppressed} suppressed, {summary.failed} failed"
    )
    if summary.rate_limited_sources:
        text += f"; rate limited: {', '.join(summary.rate_limited_sources)}"
    return text
