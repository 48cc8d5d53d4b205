"""Built-in capabilities shipped with the gateway."""

from context_gateway.capabilities.review_pr import install_review_pr_prompt
from context_gateway.capabilities.text_tools import install_grep_tool, install_uniq_tool
from context_gateway.capabilities.version import install_version_resource
from context_gateway.registry import CapabilityRegistry
from context_gateway.types.common import Implementation


def install_builtin_capabilities(registry: CapabilityRegistry, implementation: Implementation) -> CapabilityRegistry:
    """Register the ``version`` resource, the ``review-pr`` prompt and the ``uniq``/``grep`` tools."""
    install_version_resource(registry, implementation)
    install_review_pr_prompt(registry)
    install_uniq_tool(registry)
    install_grep_tool(registry)
    return registry


__all__ = [
    "install_builtin_capabilities",
    "install_grep_tool",
    "install_review_pr_prompt",
    "install_uniq_tool",
    "install_version_resource",
]
