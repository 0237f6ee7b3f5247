from .html_rewriter import (
    rewrite_html,
    rewrite_url_attributes,
    mark_text_nodes,
    replace_target_urls,
)

__all__ = [
    "rewrite_html",
    "rewrite_url_attributes",
    "mark_text_nodes",
    "replace_target_urls",
]
