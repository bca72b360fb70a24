#!/usr/bin/env python3
"""Example: Quickstart — conversation-branching

Minimal working example: hold a conversation, fork it, continue on the
fork, and merge the fork back into ``main``.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install conversation-branching
"""
from __future__ import annotations

import conversation_branching
from conversation_branching import Conversation


def main() -> None:
    print(f"conversation-branching version: {conversation_branching.__version__}")

    # Step 1: A conversation starts with an active "main" branch
    chat = Conversation("trip-planning")
    chat.say("user", "Help me plan a weekend trip.")
    chat.say("assistant", "Sure. City or countryside?")
    print(f"main has {len(chat.messages())} messages")

    # Step 2: Fork after the first message and try another answer
    alt = chat.fork("Alt Approach-2", at=1)
    chat.say("assistant", "How about the coast?")
    print(f"Forked '{alt.name}' at index {alt.created_from_message_index}")

    # Step 3: Compare the fork with main
    diff = chat.manager.diff(chat.main_branch_id, alt.branch_id)
    print(f"Divergence point: {diff.divergence_point}")
    for message in diff.added_messages:
        print(f"  + {message.role.value}: {message.content}")
    for message in diff.removed_messages:
        print(f"  - {message.role.value}: {message.content}")

    # Step 4: Merge the fork back into main
    result = chat.merge(alt.branch_id)
    if result.success:
        print(f"\nMerge approved as {result.merged_branch_id}")
    else:
        print(f"\nMerge rejected: {result.error} at {result.conflict_indices}")


if __name__ == "__main__":
    main()
