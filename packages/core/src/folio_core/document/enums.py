from __future__ import annotations

import enum


class LinearItemType(str, enum.Enum):
    heading = "heading"
    paragraph = "paragraph"
    list_item = "list_item"
    code = "code"
    thematic_break = "thematic_break"
    html = "html"


class EditAction(str, enum.Enum):
    replace = "replace"
    insert_before = "insert_before"
    insert_after = "insert_after"
    remove = "remove"
    split = "split"
    merge_with_next = "merge_with_next"
    merge_with_previous = "merge_with_previous"
