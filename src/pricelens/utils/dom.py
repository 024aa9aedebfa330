"""
DOM helpers for static HTML documents parsed with BeautifulSoup.

There is no layout engine, so computed style is approximated from the
markup itself:
- inline style declarations (inherited ones walk up the ancestors)
- the `hidden` attribute
- tag defaults (headings, bold/strike tags, <small>)

Geometry comes from inline top/left/width/height in px. Elements without
geometry are treated as on-screen and non-zero-sized.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional
import logging
import re

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString
from soupsieve import SelectorSyntaxError

from pricelens.config import settings

logger = logging.getLogger(__name__)

SKIPPED_TAGS = {'script', 'style', 'noscript', 'template', 'head', 'title'}

DEFAULT_FONT_SIZE = 16.0
DEFAULT_FONT_WEIGHT = 400

TAG_FONT_SIZES = {
    'h1': 32.0,
    'h2': 24.0,
    'h3': 18.72,
    'h4': 16.0,
    'h5': 13.28,
    'h6': 10.72,
}
SMALL_FONT_RATIO = 0.833
BOLD_TAGS = {'b', 'strong', 'th', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6'}
STRIKE_TAGS = {'s', 'strike', 'del'}

FONT_WEIGHTS = {'normal': 400, 'bold': 700, 'bolder': 700, 'lighter': 300}

OBFUSCATED_CLASS = re.compile(r'^[a-z]{20,}$')

SUMMARY_SELECTORS = [
    '[class*="summary"]',
    '[class*="Summary"]',
    '[class*="checkout"]',
    '[class*="Checkout"]',
    '[class*="total"]',
    '[class*="Total"]',
    '[class*="price-breakdown"]',
    '[class*="PriceBreakdown"]',
    '[class*="booking-info"]',
    '[class*="trip-cost"]',
    '[data-testid*="summary"]',
    '[data-testid*="total"]',
    '[data-testid*="checkout"]',
    '[role="complementary"]',
    'aside',
]


@dataclass
class ResolvedStyle:
    """Approximate computed style for an element."""
    font_size: float = DEFAULT_FONT_SIZE
    font_weight: int = DEFAULT_FONT_WEIGHT
    text_decoration: str = 'none'
    opacity: float = 1.0
    display: str = 'inline'
    visibility: str = 'visible'


@dataclass
class Rect:
    """Inline geometry in px; None where the markup says nothing."""
    top: Optional[float] = None
    left: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None

    @property
    def has_size(self) -> bool:
        return self.width is not None and self.height is not None


def parse_document(html: str) -> BeautifulSoup:
    """Parse an HTML string with the stdlib-backed parser."""
    return BeautifulSoup(html, 'html.parser')


def parse_inline_style(tag: Tag) -> Dict[str, str]:
    """
    Parse a tag's style attribute into a lowercase property dict.

    Examples:
        "font-size: 20px; FONT-WEIGHT:bold" -> {'font-size': '20px', 'font-weight': 'bold'}
    """
    style = tag.get('style') if isinstance(tag, Tag) else None
    if not style:
        return {}

    declarations = {}
    for part in style.split(';'):
        if ':' not in part:
            continue
        name, _, value = part.partition(':')
        value = value.replace('!important', '').strip()
        if name.strip() and value:
            declarations[name.strip().lower()] = value.lower()
    return declarations


def _parse_px(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    match = re.match(r'^\s*(-?\d+(?:\.\d+)?)\s*(px)?\s*$', value)
    return float(match.group(1)) if match else None


def _resolve_font_size(value: str, parent_size: float) -> float:
    match = re.match(r'^\s*(\d+(?:\.\d+)?)\s*(px|pt|em|rem|%)?\s*$', value)
    if not match:
        if value == 'smaller':
            return parent_size * SMALL_FONT_RATIO
        if value == 'larger':
            return parent_size * 1.2
        return parent_size

    number = float(match.group(1))
    unit = match.group(2) or 'px'
    if unit == 'pt':
        return number * 4 / 3
    if unit == 'em':
        return number * parent_size
    if unit == 'rem':
        return number * DEFAULT_FONT_SIZE
    if unit == '%':
        return number * parent_size / 100
    return number


def _resolve_font_weight(value: str, parent_weight: int) -> int:
    if value in FONT_WEIGHTS:
        return FONT_WEIGHTS[value]
    if value.isdigit():
        return int(value)
    return parent_weight


def _chain(tag: Tag) -> List[Tag]:
    """Ancestors from the outermost element down to tag itself."""
    chain = [tag]
    for parent in tag.parents:
        if isinstance(parent, BeautifulSoup):
            break
        chain.append(parent)
    chain.reverse()
    return chain


def resolve_style(tag: Tag) -> ResolvedStyle:
    """
    Approximate the computed style of tag from inline styles and tag defaults.

    font-size, font-weight and visibility inherit; opacity multiplies;
    display:none or line-through on any ancestor applies to the element.
    """
    style = ResolvedStyle()

    for node in _chain(tag):
        declarations = parse_inline_style(node)

        if node.name in TAG_FONT_SIZES:
            style.font_size = TAG_FONT_SIZES[node.name]
        elif node.name == 'small':
            style.font_size = style.font_size * SMALL_FONT_RATIO

        if node.name in BOLD_TAGS:
            style.font_weight = 700
        if node.name in STRIKE_TAGS:
            style.text_decoration = 'line-through'

        if node.has_attr('hidden'):
            style.display = 'none'

        if 'font-size' in declarations:
            style.font_size = _resolve_font_size(declarations['font-size'], style.font_size)
        if 'font-weight' in declarations:
            style.font_weight = _resolve_font_weight(declarations['font-weight'], style.font_weight)

        decoration = declarations.get('text-decoration') or declarations.get('text-decoration-line')
        if decoration and 'line-through' in decoration:
            style.text_decoration = 'line-through'

        if 'visibility' in declarations:
            style.visibility = declarations['visibility']

        if declarations.get('display') == 'none':
            style.display = 'none'

        opacity = _parse_px(declarations.get('opacity'))
        if opacity is not None:
            style.opacity *= max(0.0, min(1.0, opacity))

    return style


def get_rect(tag: Tag) -> Rect:
    """Inline px geometry of tag (top/left/width/height)."""
    declarations = parse_inline_style(tag)
    return Rect(
        top=_parse_px(declarations.get('top')),
        left=_parse_px(declarations.get('left')),
        width=_parse_px(declarations.get('width')),
        height=_parse_px(declarations.get('height')),
    )


def is_element_visible(tag: Tag) -> bool:
    """Hidden by display, visibility, near-zero opacity or an explicit zero box."""
    style = resolve_style(tag)
    if style.display == 'none' or style.visibility == 'hidden':
        return False
    if style.opacity < 0.1:
        return False

    rect = get_rect(tag)
    if rect.has_size and rect.width == 0 and rect.height == 0:
        return False
    return True


def is_in_viewport(tag: Tag, margin: Optional[int] = None) -> bool:
    """
    Whether tag's inline geometry falls within the viewport plus margin.

    Elements without geometry are treated as in the viewport.
    """
    margin = settings.VIEWPORT_MARGIN if margin is None else margin
    rect = get_rect(tag)

    if rect.top is not None:
        bottom = rect.top + (rect.height or 0)
        if bottom < -margin or rect.top > settings.VIEWPORT_HEIGHT + margin:
            return False

    if rect.left is not None:
        right = rect.left + (rect.width or 0)
        if right < -margin or rect.left > settings.VIEWPORT_WIDTH + margin:
            return False

    return True


def iter_text_nodes(root: Tag) -> Iterator[NavigableString]:
    """
    Yield text nodes under root in document order.

    Iterative walk; skips script/style-like subtrees, comments and other
    non-text strings.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        if isinstance(node, NavigableString):
            if not isinstance(node, PreformattedString):
                yield node
            continue
        if not isinstance(node, Tag) or node.name in SKIPPED_TAGS:
            continue
        stack.extend(reversed(node.contents))


def get_text(tag: Tag, max_depth: Optional[int] = None) -> str:
    """
    Whitespace-normalized text of tag, descending at most max_depth levels.
    """
    max_depth = settings.MAX_TEXT_DEPTH if max_depth is None else max_depth
    parts = []
    stack = [(tag, 0)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, NavigableString):
            if not isinstance(node, PreformattedString):
                parts.append(str(node))
            continue
        if not isinstance(node, Tag) or node.name in SKIPPED_TAGS or depth >= max_depth:
            continue
        stack.extend((child, depth + 1) for child in reversed(node.contents))
    return re.sub(r'\s+', ' ', ' '.join(parts)).strip()


def get_nearby_text(tag: Tag, levels: int = 3) -> str:
    """
    Collect label-like text around tag.

    - Short (< 100 chars) child text of up to `levels` ancestors
    - Previous and next sibling element text
    - aria-label and data-testid of tag
    """
    texts: List[str] = []

    current = tag
    for _ in range(levels):
        parent = current.parent
        if parent is None or isinstance(parent, BeautifulSoup):
            break
        for child in parent.find_all(True, recursive=False):
            text = get_text(child)
            if text and len(text) < 100:
                texts.append(text)
        current = parent

    for sibling in (tag.find_previous_sibling(), tag.find_next_sibling()):
        if sibling is not None:
            texts.append(get_text(sibling))

    aria_label = tag.get('aria-label')
    if aria_label:
        texts.append(aria_label)

    test_id = tag.get('data-testid')
    if test_id:
        texts.append(test_id)

    return ' '.join(t for t in texts if t)


def get_dom_path(tag: Tag, max_parts: int = 5) -> str:
    """
    Short CSS-like path for evidence, e.g. "div.summary > span#total".

    Stops at <body> or after max_parts segments; skips obfuscated
    (20+ lowercase letter) class names.
    """
    parts: List[str] = []
    current = tag

    while isinstance(current, Tag) and not isinstance(current, BeautifulSoup) and len(parts) < max_parts:
        if current.name == 'body':
            break

        element_id = current.get('id')
        if element_id:
            parts.insert(0, f'{current.name}#{element_id}')
        else:
            classes = [c for c in current.get('class', []) if not OBFUSCATED_CLASS.match(c)][:2]
            selector = current.name + ''.join(f'.{c}' for c in classes)
            parts.insert(0, selector)

        current = current.parent

    return ' > '.join(parts)


def find_summary_containers(root: Tag, selectors: Optional[List[str]] = None) -> List[Tag]:
    """Elements matching any summary/checkout selector; bad selectors are skipped."""
    found: List[Tag] = []
    seen = set()

    for selector in selectors or SUMMARY_SELECTORS:
        try:
            matches = root.select(selector)
        except SelectorSyntaxError:
            logger.debug("Skipping invalid summary selector %r", selector)
            continue
        for element in matches:
            if id(element) not in seen:
                seen.add(id(element))
                found.append(element)

    return found


def is_inside_any(tag: Tag, containers: List[Tag]) -> bool:
    """True if tag is one of containers or a descendant of one."""
    if not containers:
        return False
    ids = {id(c) for c in containers}
    if id(tag) in ids:
        return True
    return any(id(parent) in ids for parent in tag.parents)


def closest(tag: Tag, predicate) -> Optional[Tag]:
    """Nearest of tag and its ancestors for which predicate holds."""
    current = tag
    while isinstance(current, Tag) and not isinstance(current, BeautifulSoup):
        if predicate(current):
            return current
        current = current.parent
    return None
