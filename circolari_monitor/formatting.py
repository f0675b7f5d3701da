"""Notification texts posted to the channel.

Kept in one place so the Telegram and console sinks print the same thing.
"""

from __future__ import annotations

from .models import ItemRecord


def _body(item: ItemRecord) -> list[str]:
    lines = [item.title, item.description]
    return [line for line in lines if line]


def format_new_item(item: ItemRecord) -> str:
    heading = f"Circolare {item.number} del {item.date}".strip()
    return "\n".join([heading, *_body(item), item.identity])


def format_update(item: ItemRecord, update_count: int, timestamp_ms: int) -> str:
    """Update message; the link carries ``ts`` so previews refetch the document."""
    heading = (
        f"Aggiornamento n. {update_count} della circolare {item.number} del {item.date}"
    ).strip()
    separator = "&" if "?" in item.identity else "?"
    link = f"{item.identity}{separator}ts={timestamp_ms}"
    return "\n".join([heading, *_body(item), link])


__all__ = ["format_new_item", "format_update"]
