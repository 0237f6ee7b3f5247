"""
HTML rewriting applied to pages relayed from the target host.

Two independent passes run over one parsed document:

* URL attributes that point at the target host are pointed back at the proxy.
* Every six-letter word in visible text gets a trademark sign appended.
"""

import logging
import re
from typing import List

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import (
    CData,
    Comment,
    Declaration,
    Doctype,
    ProcessingInstruction,
    Script,
    Stylesheet,
)

logger = logging.getLogger("uvicorn.error")

TRADEMARK = "™"

# Elements are picked by these attributes ...
SELECTOR_ATTRIBUTES = ("href", "src", "action", "data-url")
# ... but on a picked element all of these are rewritten. An element that only
# carries data-src or srcset is never picked.
URL_ATTRIBUTES = frozenset(
    {"href", "src", "action", "data-url", "data-src", "srcset"}
)

SKIPPED_ELEMENTS = frozenset({"script", "style"})

# Markup and raw-text strings; template and ruby strings count as visible text
NON_TEXT_STRINGS = (
    CData,
    Comment,
    Declaration,
    Doctype,
    ProcessingInstruction,
    Script,
    Stylesheet,
)

# Latin-1 letters (U+00A0..U+00FF) end a word, any other Unicode word
# character does not.
SIX_LETTER_WORD = re.compile(
    r"(?<![^\W\u00a0-\u00ff])[a-zA-Z]{6}(?![^\W\u00a0-\u00ff])"
)


def replace_target_urls(
    value: str, target_host: str, proxy_host: str, scheme: str = "https"
) -> str:
    """Point absolute and protocol-relative target URLs at the proxy.

    Replacement works on the whole value, so every URL of a multi-URL
    attribute such as ``srcset`` is covered.
    """
    if not value:
        return value

    value = value.replace(f"https://{target_host}", f"{scheme}://{proxy_host}")
    value = value.replace(f"http://{target_host}", f"{scheme}://{proxy_host}")
    value = value.replace(f"//{target_host}", f"//{proxy_host}")
    return value


def _has_selector_attribute(tag: Tag) -> bool:
    return any(tag.has_attr(name) for name in SELECTOR_ATTRIBUTES)


def rewrite_url_attributes(
    soup: BeautifulSoup, target_host: str, proxy_host: str, scheme: str
) -> int:
    """Rewrite URL attributes in place and return how many values changed."""
    changed = 0
    for element in soup.find_all(_has_selector_attribute):
        for name, value in list(element.attrs.items()):
            if name.lower() not in URL_ATTRIBUTES or not isinstance(value, str):
                continue
            new_value = replace_target_urls(value, target_host, proxy_host, scheme)
            if new_value != value:
                element[name] = new_value
                changed += 1
    return changed


def mark_word(text: str) -> str:
    return SIX_LETTER_WORD.sub(lambda m: m.group(0) + TRADEMARK, text)


def mark_text_nodes(soup: BeautifulSoup) -> int:
    """Append the trademark sign to six-letter words in visible text.

    The tree is walked with an explicit stack; script and style subtrees are
    skipped entirely. html.parser already hands text over entity-decoded and
    the serializer escapes it again on output.
    """
    text_nodes: List[NavigableString] = []
    stack = [soup]
    while stack:
        node = stack.pop()
        if isinstance(node, Tag):
            if node.name and node.name.lower() in SKIPPED_ELEMENTS:
                continue
            stack.extend(reversed(node.contents))
        elif isinstance(node, NavigableString) and not isinstance(
            node, NON_TEXT_STRINGS
        ):
            text_nodes.append(node)

    changed = 0
    for node in text_nodes:
        marked = mark_word(str(node))
        if marked != node:
            node.replace_with(type(node)(marked))
            changed += 1
    return changed


def rewrite_html(html: str, target_host: str, proxy_host: str, scheme: str) -> str:
    soup = BeautifulSoup(html, "html.parser", multi_valued_attributes=None)

    urls = rewrite_url_attributes(soup, target_host, proxy_host, scheme)
    words = mark_text_nodes(soup)
    logger.debug(
        f"Rewrote HTML for {proxy_host}: {urls} URL attributes, {words} text nodes"
    )

    return soup.decode()
