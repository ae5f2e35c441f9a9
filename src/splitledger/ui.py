"""Interactive UI components for picking members and confirming warnings."""

import logging
from collections import Counter
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import Member, SplitWarning

logger = logging.getLogger(__name__)

ID_SUFFIX_LENGTH = 6


class MemberCompleter(Completer):
    """Fuzzy search completer for project members."""

    def __init__(self, members: list[Member], your_name: str = ""):
        """Initialize the completer with the project's members."""
        self.members = members

        # Members sharing a name are told apart by a short id suffix
        name_counts = Counter(m.name.casefold() for m in members)

        # Build display labels and label-to-id mapping
        self.searchable = []
        self.name_to_id = {}
        for member in members:
            label = member.name
            if name_counts[member.name.casefold()] > 1:
                label = f"{member.name} [{member.id[:ID_SUFFIX_LENGTH]}]"
            else:
                self.name_to_id[member.name] = member.id
            if your_name and member.name.casefold() == your_name.strip().casefold():
                label = f"{label} (you)"
            self.searchable.append((member.id, label))
            self.name_to_id[label] = member.id

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for _member_id, label in self.searchable:
            if not query or self._fuzzy_match(query, label.lower()):
                yield Completion(
                    text=label,
                    start_position=-len(document.text),
                    display=label,
                )

    def _fuzzy_match(self, query: str, text: str) -> bool:
        """
        Fuzzy match: all characters in query must appear in order in text.

        Example:
            query="bb" matches "Bobby"
        """
        query_idx = 0
        for char in text:
            if query_idx < len(query) and char == query[query_idx]:
                query_idx += 1
        return query_idx == len(query)


def select_member_interactive(
    members: list[Member], prompt: str = "Paid by", your_name: str = ""
) -> str | None:
    """
    Interactive member selection with fuzzy search.

    Returns:
        Selected member ID, or None to cancel
    """
    print("   Type to search, press Enter to confirm, Ctrl+C to cancel\n")

    completer = MemberCompleter(members, your_name)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt(f"{prompt}: ", complete_while_typing=True)

            if not result:
                return None

            member_id = completer.name_to_id.get(result.strip())
            if member_id:
                logger.debug(f"User selected member {member_id}")
                return member_id

            print("❌ Unknown member. Please select from the list or press Tab to complete.")

    except KeyboardInterrupt:
        print("\n⏭️  Cancelled")
        return None
    except EOFError:
        return None


def resolve_member(members: list[Member], reference: str) -> str | None:
    """Find a member by id or by trimmed, case-insensitive name."""
    for member in members:
        if member.id == reference:
            return member.id
    key = reference.strip().casefold()
    for member in members:
        if member.name.casefold() == key:
            return member.id
    return None


def confirm_warnings(warnings: list[SplitWarning]) -> bool:
    """
    Show advisory split warnings and ask whether to save anyway.

    Returns:
        True if there is nothing to confirm or the user accepts
    """
    if not warnings:
        return True

    for warning in warnings:
        print(f"\n⚠️  {warning.message}")

    response = input("   Save anyway? [y/N] ").strip().lower()

    return response in ("y", "yes")
