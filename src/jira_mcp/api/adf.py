"""Atlassian Document Format (ADF) helpers.

Jira v3 stores descriptions, comments and worklog comments as ADF JSON
documents. These helpers cover the plain-text round trip the tools need.
"""
from typing import Any, Optional

# Block nodes whose children are separated by newlines
_LINE_JOINED = {"bulletList", "orderedList", "blockquote"}


def text_to_adf(text: Optional[str]) -> dict[str, Any]:
    """Wrap plain text in an ADF document, one paragraph per blank-line block."""
    if not text:
        return {"type": "doc", "version": 1, "content": []}

    paragraphs = [p for p in text.split("\n\n") if p]
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": p.replace("\n", " ")}],
            }
            for p in paragraphs
        ],
    }


def is_adf_document(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and value.get("type") == "doc"
        and "version" in value
        and "content" in value
    )


def _node_to_text(node: dict[str, Any]) -> str:
    node_type = node.get("type")
    children = node.get("content") or []

    if node_type == "text":
        return node.get("text", "")
    if node_type == "hardBreak":
        return "\n"
    if node_type in ("mention", "emoji"):
        return (node.get("attrs") or {}).get("text", "")
    if node_type == "codeBlock":
        return "".join(child.get("text", "") for child in children)
    if node_type in _LINE_JOINED:
        return "\n".join(_node_to_text(child) for child in children)
    if children:
        return "".join(_node_to_text(child) for child in children)
    return node.get("text", "")


def adf_to_text(value: Any) -> str:
    """Flatten an ADF document (or a plain string) to text.

    Top-level blocks are separated by blank lines. Unknown values yield "".
    """
    if not value:
        return ""
    if isinstance(value, str):
        return value
    if is_adf_document(value):
        return "\n\n".join(_node_to_text(node) for node in value.get("content") or [])
    if isinstance(value, dict):
        return _node_to_text(value)
    return ""


__all__ = ["adf_to_text", "is_adf_document", "text_to_adf"]
