"""The ``review-pr`` prompt: frames a code review of a pull request."""

import json
from typing import Any

from context_gateway.exceptions import DispatchError
from context_gateway.registry import CapabilityRegistry
from context_gateway.types.content import TextContent
from context_gateway.types.prompts import PromptMessage

REVIEW_PR_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "PR title"},
        "description": {"type": "string", "description": "PR description"},
        "files": {"type": "string", "description": "JSON string of changed files"},
        "base_branch": {"type": "string", "description": "Base branch name"},
        "head_branch": {"type": "string", "description": "Head branch name"},
        "author": {"type": "string", "description": "PR author username"},
    },
    "required": ["title", "description", "files", "base_branch", "head_branch", "author"],
}

REVIEWER_FRAMING = """You are a senior software engineer performing a code review. Your task is to:
1. Review the code changes thoroughly
2. Check for potential bugs, security issues, and performance problems
3. Ensure code follows best practices and maintainability standards
4. Look for opportunities to improve code quality
5. Provide constructive feedback
6. Suggest specific improvements when needed

Focus on:
- Code correctness and logic
- Error handling and edge cases
- Code style and consistency
- Documentation and comments
- Test coverage
- Security considerations
- Performance implications
- Maintainability and readability"""

REVIEW_REQUEST_FOOTER = """Please provide a thorough code review focusing on:
1. Overall assessment of the changes
2. Specific issues or concerns
3. Suggestions for improvement
4. Security and performance considerations
5. Best practices and maintainability

Format your review in a clear, structured way with specific examples and actionable feedback."""


def _format_file(file: dict[str, Any]) -> str:
    return (
        f"File: {file.get('filename', '')}\n"
        f"Status: {file.get('status', '')}\n"
        f"Changes: +{file.get('additions', 0)} -{file.get('deletions', 0)}\n"
        f"Content:\n```\n{file.get('content', '')}\n```\n"
    )


def review_pr(args: dict[str, str]) -> list[PromptMessage]:
    try:
        files = json.loads(args.get("files") or "[]")
    except json.JSONDecodeError as e:
        raise DispatchError(f"Invalid arguments for prompt review-pr: files is not valid JSON: {e}") from e
    if not isinstance(files, list):
        raise DispatchError("Invalid arguments for prompt review-pr: files must be a JSON array")

    changed = "\n".join(_format_file(f) for f in files if isinstance(f, dict))
    request = (
        "Please review this Pull Request:\n\n"
        f"Title: {args.get('title', '')}\n"
        f"Author: {args.get('author', '')}\n"
        f"Base Branch: {args.get('base_branch', '')}\n"
        f"Head Branch: {args.get('head_branch', '')}\n\n"
        f"Description:\n{args.get('description', '')}\n\n"
        f"Changed Files:\n{changed}\n"
        f"{REVIEW_REQUEST_FOOTER}"
    )
    return [
        PromptMessage(role="assistant", content=TextContent(text=REVIEWER_FRAMING)),
        PromptMessage(role="user", content=TextContent(text=request)),
    ]


def install_review_pr_prompt(registry: CapabilityRegistry) -> None:
    registry.register("prompt", "review-pr", "Review a pull request's code changes", REVIEW_PR_SCHEMA, review_pr)
