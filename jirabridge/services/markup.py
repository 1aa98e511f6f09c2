"""Markdown <-> Jira wiki markup conversion"""

import re
from typing import List

_HTML_IMG_RE = re.compile(r"<img\b[^>]*?\bsrc\s*=\s*[\"']?(?P<src>[^\"'\s>]+)[\"']?[^>]*>", re.IGNORECASE)
_FENCE_RE = re.compile(r"^\s*(`{3,}|~{3,})\s*([\w+#.-]*)\s*$")
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
_RULE_RE = re.compile(r"^\s*(?:---+|\*\*\*+|___+)\s*$")
_BULLET_RE = re.compile(r"^(\s*)[-*+]\s+(.*)$")
_ORDERED_RE = re.compile(r"^(\s*)\d+[.)]\s+(.*)$")
_TABLE_SEP_RE = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$")

_MD_INLINE_RE = re.compile(
    r"(?P<code>`([^`]+)`)"
    r"|(?P<bolditalic>\*\*\*(.+?)\*\*\*)"
    r"|(?P<bold>\*\*(.+?)\*\*|__(.+?)__)"
    r"|(?P<italic>(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])|(?<!\w)_(?!\s)(.+?)(?<!\s)_(?!\w))"
    r"|(?P<strike>~~(.+?)~~)"
    r"|(?P<image>!\[([^\]]*)\]\(([^)\s]+)[^)]*\))"
    r"|(?P<link>\[([^\]]+)\]\(([^)\s]+)[^)]*\))"
)

_JIRA_HEADING_RE = re.compile(r"^h([1-6])\.\s+(.*)$")
_JIRA_BULLET_RE = re.compile(r"^(\*+)\s+(.*)$")
_JIRA_ORDERED_RE = re.compile(r"^(#+)\s+(.*)$")
_JIRA_CODE_OPEN_RE = re.compile(r"^\s*\{(code|noformat)(?::([^}]*))?\}\s*$")
_JIRA_CODE_CLOSE_RE = re.compile(r"^\s*\{(code|noformat)\}\s*$")
_JIRA_INLINE_RE = re.compile(
    r"(?P<code>\{\{(.+?)\}\})"
    r"|(?P<bold>(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*]))"
    r"|(?P<italic>(?<!\w)_(?!\s)(.+?)(?<!\s)_(?!\w))"
    r"|(?P<strike>(?<![\w-])-(?![\s-])(.+?)(?<![\s-])-(?![\w-]))"
    r"|(?P<image>!([^!|\s]+)(?:\|[^!]*)?!)"
    r"|(?P<link>\[([^|\]]+)\|([^\]]+)\])"
)


def rewrite_html_images(text: str, width_percent: int = 50) -> str:
    """Turn inline <img src=...> tags into Jira's sized image macro."""
    if not text:
        return ""
    return _HTML_IMG_RE.sub(lambda m: f"!{m.group('src')}|width={int(width_percent)}%!", text)


def _md_inline(text: str) -> str:
    def _sub(m: re.Match) -> str:
        if m.group("code"):
            return "{{" + m.group(2) + "}}"
        if m.group("bolditalic"):
            return f"*_{m.group(4)}_*"
        if m.group("bold"):
            return f"*{m.group(6) or m.group(7)}*"
        if m.group("italic"):
            return f"_{m.group(9) or m.group(10)}_"
        if m.group("strike"):
            return f"-{m.group(12)}-"
        if m.group("image"):
            return f"!{m.group(15)}!"
        if m.group("link"):
            return f"[{m.group(17)}|{m.group(18)}]"
        return m.group(0)

    return _MD_INLINE_RE.sub(_sub, text)


def _md_table_row(line: str, header: bool) -> str:
    cells = [c.strip() for c in line.strip().strip("|").split("|")]
    sep = "||" if header else "|"
    return sep + sep.join(_md_inline(c) for c in cells) + sep


def markdown_to_jira(markdown: str, *, image_width_percent: int = 50) -> str:
    """Convert GitHub-flavoured Markdown to Jira wiki markup.

    Covers what issue bodies actually use: fenced code, headings, lists,
    quotes, rules, tables, emphasis, links and images. Anything else passes
    through unchanged.
    """
    if not markdown:
        return ""
    text = rewrite_html_images(markdown.replace("\r\n", "\n"), image_width_percent)
    lines = text.split("\n")
    out: List[str] = []
    i, n = 0, len(lines)
    while i < n:
        line = lines[i]
        fence = _FENCE_RE.match(line)
        if fence:
            marker = fence.group(1)
            lang = fence.group(2)
            out.append("{code:" + lang + "}" if lang else "{code}")
            i += 1
            while i < n and not lines[i].strip().startswith(marker):
                out.append(lines[i])
                i += 1
            out.append("{code}")
            i += 1
            continue
        heading = _HEADING_RE.match(line)
        if heading:
            out.append(f"h{len(heading.group(1))}. {_md_inline(heading.group(2).strip())}")
        elif _RULE_RE.match(line):
            out.append("----")
        elif line.startswith(">"):
            out.append("bq. " + _md_inline(line.lstrip(">").strip()))
        elif _BULLET_RE.match(line):
            m = _BULLET_RE.match(line)
            depth = len(m.group(1).expandtabs(2)) // 2 + 1
            out.append("*" * depth + " " + _md_inline(m.group(2)))
        elif _ORDERED_RE.match(line):
            m = _ORDERED_RE.match(line)
            depth = len(m.group(1).expandtabs(2)) // 2 + 1
            out.append("#" * depth + " " + _md_inline(m.group(2)))
        elif "|" in line and i + 1 < n and _TABLE_SEP_RE.match(lines[i + 1]):
            out.append(_md_table_row(line, header=True))
            i += 2
            while i < n and "|" in lines[i] and lines[i].strip():
                out.append(_md_table_row(lines[i], header=False))
                i += 1
            continue
        else:
            out.append(_md_inline(line))
        i += 1
    return "\n".join(out)


def _jira_inline(text: str) -> str:
    def _sub(m: re.Match) -> str:
        if m.group("code"):
            return f"`{m.group(2)}`"
        if m.group("bold"):
            return f"**{m.group(4)}**"
        if m.group("italic"):
            return f"*{m.group(6)}*"
        if m.group("strike"):
            return f"~~{m.group(8)}~~"
        if m.group("image"):
            return f"![]({m.group(10)})"
        if m.group("link"):
            return f"[{m.group(12)}]({m.group(13)})"
        return m.group(0)

    return _JIRA_INLINE_RE.sub(_sub, text)


def jira_to_markdown(wiki: str) -> str:
    """Convert Jira wiki markup back to Markdown (used for Target-created items)."""
    if not wiki:
        return ""
    lines = wiki.replace("\r\n", "\n").split("\n")
    out: List[str] = []
    i, n = 0, len(lines)
    while i < n:
        line = lines[i]
        code = _JIRA_CODE_OPEN_RE.match(line)
        if code:
            lang = (code.group(2) or "").split("|")[0].strip()
            out.append("```" + lang)
            i += 1
            while i < n and not _JIRA_CODE_CLOSE_RE.match(lines[i]):
                out.append(lines[i])
                i += 1
            out.append("```")
            i += 1
            continue
        heading = _JIRA_HEADING_RE.match(line)
        bullet = _JIRA_BULLET_RE.match(line)
        ordered = _JIRA_ORDERED_RE.match(line)
        if heading:
            out.append("#" * int(heading.group(1)) + " " + _jira_inline(heading.group(2)))
        elif line.strip() == "----":
            out.append("---")
        elif line.startswith("bq. "):
            out.append("> " + _jira_inline(line[4:]))
        elif bullet:
            out.append("  " * (len(bullet.group(1)) - 1) + "- " + _jira_inline(bullet.group(2)))
        elif ordered:
            out.append("  " * (len(ordered.group(1)) - 1) + "1. " + _jira_inline(ordered.group(2)))
        elif line.startswith("||"):
            cells = [c.strip() for c in line.strip().strip("|").split("||")]
            out.append("| " + " | ".join(_jira_inline(c) for c in cells) + " |")
            out.append("|" + "---|" * len(cells))
        else:
            out.append(_jira_inline(line))
        i += 1
    return "\n".join(out)
