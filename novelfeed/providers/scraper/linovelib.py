"""linovelib.com page scraper.

Turns rendered HTML from an :class:`IPageFetcher` into the page models in
:mod:`novelfeed.models`.  The ``parse_*`` functions are pure and operate on
an HTML string so they can be exercised against saved fixtures; the
:class:`LinovelibScraper` methods add the fetch (path, wait selector) and
the catalog fallback on top.

Return conventions shared by every parser:

- ``None`` -- the page loaded but lacks the minimum fields (name, update
  time, title); callers treat this as "not found".
- :class:`ScrapeError` -- the page says the work was taken down
  (``missing=True``) or the expected container is absent.

Chapter text on the site is served with its paragraphs deterministically
shuffled (everything after the first 20 paragraphs, seeded by the chapter
id); :func:`restore_paragraph_order` undoes that before serialization.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import structlog
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from novelfeed.interfaces.page_fetcher import IPageFetcher
from novelfeed.models.listing import (
    TOP_SORT,
    WENKU_ANIMATION,
    WENKU_PROGRESS,
    WENKU_REGION,
    WENKU_SORT,
    WENKU_TAG,
    WENKU_UPDATED_WITHIN,
    WENKU_WORD_COUNT,
    ListingItem,
    ListingPage,
    TopFilter,
    WenkuFilter,
    resolve_mapped_value,
)
from novelfeed.models.novel import (
    Author,
    ChapterContent,
    ChapterImage,
    ChapterPagePart,
    ChapterRef,
    NovelPage,
    VolumePage,
    VolumeSummary,
)
from novelfeed.utils.errors import ScrapeError
from novelfeed.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

TransformUrl = Callable[[str], str]

BASE_URL = "https://www.linovelib.com"

NOVEL_SELECTOR = ".wrap"
CHAPTER_SELECTOR = ".mlfy_main"

_SHANGHAI = ZoneInfo("Asia/Shanghai")
_DATETIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")

_TAKEN_DOWN = ("抱歉，作品已下架！", "小说下架了", "抱歉，该小说不存在！")
_NO_CHAPTER = (*_TAKEN_DOWN, "沒有可閱讀的章節")

_CHAPTER_TITLE_RE = re.compile(r"^(.*?)（(\d+)/(\d+)）$", re.DOTALL)
_VOLUME_HREF_RE = re.compile(r"vol_(\d+)\.html")
_CHAPTER_HREF_RE = re.compile(r"/(\d+)\.html$")
_NOVEL_HREF_RE = re.compile(r"/novel/(\d+)\.html")
_STYLE_URL_RE = re.compile(r"""url\(['"]?(.*?)['"]?\)""")
_PAGE_STATS_RE = re.compile(r"(\d+)\s*/\s*(\d+)")
_CONTENT_IMG_RE = re.compile(r"""<img\b[^>]*?\bsrc=["']([^"']+)["'][^>]*?>""", re.IGNORECASE)

# Paragraph shuffle parameters used by the site's reader script.
_KEEP_HEAD = 20
_LCG_MUL = 9302
_LCG_INC = 49397
_LCG_MOD = 233280

_BBCODE_TAGS = {
    "b": "strong",
    "i": "em",
    "u": "u",
    "s": "s",
    "sub": "sub",
    "sup": "sup",
    "quote": "blockquote",
}


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def novel_path(nid: int) -> str:
    return f"/novel/{nid}.html"


def catalog_path(nid: int) -> str:
    return f"/novel/{nid}/catalog"


def volume_path(nid: int, vid: int) -> str:
    return f"/novel/{nid}/vol_{vid}.html"


def chapter_path(nid: int, cid: int, page: int = 1) -> str:
    suffix = f"_{page}" if page > 1 else ""
    return f"/novel/{nid}/{cid}{suffix}.html"


def top_path(filter_: TopFilter) -> str:
    sort = resolve_mapped_value(TOP_SORT, filter_.sort, "monthVisit")
    return f"/top/{sort}/{filter_.page or 1}.html"


def wenku_path(filter_: WenkuFilter) -> str:
    if filter_.path:
        path = filter_.path.strip()
        return path if path.startswith("/wenku") else f"/wenku/{path.lstrip('/')}"

    sort = resolve_mapped_value(WENKU_SORT, filter_.sort, "lastUpdate")
    segments = [
        resolve_mapped_value(WENKU_TAG, filter_.tag, "all"),
        resolve_mapped_value(WENKU_PROGRESS, filter_.progress, "all"),
        resolve_mapped_value(WENKU_ANIMATION, filter_.animation, "all"),
        resolve_mapped_value(WENKU_REGION, filter_.region, "all"),
        # channel and initial only accept "all" (0) on the site today
        0,
        0,
        resolve_mapped_value(WENKU_WORD_COUNT, filter_.word_count, "all"),
        filter_.page or 1,
        resolve_mapped_value(WENKU_UPDATED_WITHIN, filter_.updated_within, "all"),
    ]
    return f"/wenku/{sort}_" + "_".join(str(s) for s in segments) + ".html"


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def parse_shanghai_datetime(value: str) -> datetime | None:
    """Parse a site timestamp (Asia/Shanghai wall time) into an aware UTC datetime."""
    text = value.strip()
    for fmt in _DATETIME_FORMATS:
        try:
            naive = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return naive.replace(tzinfo=_SHANGHAI).astimezone(timezone.utc)
    return None


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _text(node: Tag | None) -> str:
    return node.get_text().strip() if node is not None else ""


def _has_text(soup: BeautifulSoup, needles: tuple[str, ...]) -> bool:
    body = soup.body if soup.body is not None else soup
    content = body.get_text()
    return any(needle in content for needle in needles)


def _transform(url: str | None, transform_url: TransformUrl | None) -> str | None:
    if not url:
        return None
    if transform_url is None:
        return url
    return transform_url(url) or url


def _update_time(soup: BeautifulSoup) -> datetime | None:
    meta = soup.select_one('meta[property="og:novel:update_time"]')
    raw = meta.get("content", "") if meta is not None else ""
    return parse_shanghai_datetime(raw) if raw else None


def _description(soup: BeautifulSoup) -> str:
    node = soup.select_one(".book-info > .book-dec > p:not(.backupname)")
    return node.decode_contents() if node is not None else ""


def _labels(soup: BeautifulSoup) -> list[str]:
    return [t for t in (_text(a) for a in soup.select(".book-info > .book-label a")) if t]


def _cover(soup: BeautifulSoup, transform_url: TransformUrl | None) -> str | None:
    img = soup.select_one(".book-img > img")
    return _transform(img.get("src") if img is not None else None, transform_url)


def _strip_parens(value: str) -> str:
    return re.sub(r"[()（）]", "", value).strip()


def extract_authors(soup: BeautifulSoup) -> list[Author]:
    """Read credited people from the author block, falling back to meta tags."""
    authors: list[Author] = []
    for link in soup.select(".book-author .au-name a"):
        ruby = link.find("ruby")
        position = ""
        if ruby is not None:
            rt = ruby.find("rt")
            if rt is not None and rt.get_text():
                position = _strip_parens(rt.get_text())
                if position == "插画":
                    position = "illustrator"
        if not position:
            href = link.get("href", "")
            if "/illustratorarticle/" in href:
                position = "illustrator"
            elif "/translatorarticle/" in href:
                position = "translator"
            else:
                position = "author"

        if ruby is not None:
            cloned = copy.copy(ruby)
            for extra in cloned.find_all(["rt", "rp"]):
                extra.decompose()
            name = _strip_parens(cloned.get_text())
        else:
            name = _strip_parens(link.get_text())

        if name:
            authors.append(Author(name=name, position=position))

    if authors:
        return authors

    meta = soup.select_one('meta[property="og:novel:author"]') or soup.select_one(
        'meta[name="author"]'
    )
    raw = (meta.get("content", "") if meta is not None else "").strip()
    if not raw:
        return []
    fallback_position = _text(soup.select_one(".book-author .au-head em")) or "author"
    return [
        Author(name=part.strip(), position=fallback_position)
        for part in re.split(r"[、,，]", raw)
        if part.strip()
    ]


# ---------------------------------------------------------------------------
# Novel and volume pages
# ---------------------------------------------------------------------------


def parse_volume_list(
    soup: BeautifulSoup,
    nid: int,
    transform_url: TransformUrl | None = None,
) -> list[VolumeSummary]:
    """Volumes listed on the novel page itself."""
    volumes: list[VolumeSummary] = []
    for link in soup.select(".book-vol-chapter > a"):
        match = _VOLUME_HREF_RE.search(link.get("href", ""))
        title = link.get("title", "") or ""
        style_node = link.select_one(".tit.fl")
        style = style_node.get("style", "") if style_node is not None else ""
        cover_match = _STYLE_URL_RE.search(style or "")
        cover = _transform(cover_match.group(1) if cover_match else None, transform_url)
        if not (match and title and cover):
            continue
        volumes.append(
            VolumeSummary(
                nid=nid,
                vid=int(match.group(1)),
                title=title,
                cover=cover,
                volume=_text(link.find("h4")),
            )
        )
    return volumes


def parse_catalog_volumes(
    soup: BeautifulSoup,
    nid: int,
    transform_url: TransformUrl | None = None,
) -> list[VolumeSummary]:
    """Volumes listed on the ``/catalog`` page."""
    volumes: list[VolumeSummary] = []
    for node in soup.select(".volume-list > .volume"):
        link = node.find("a")
        match = _VOLUME_HREF_RE.search(link.get("href", "")) if link is not None else None
        title = _text(node.find("h2"))
        img = node.find("img")
        cover = _transform(img.get("data-original") if img is not None else None, transform_url)
        if not (match and title and cover):
            continue
        volumes.append(VolumeSummary(nid=nid, vid=int(match.group(1)), title=title, cover=cover))
    return volumes


def parse_novel_page(
    html: str,
    nid: int,
    transform_url: TransformUrl | None = None,
) -> NovelPage | None:
    """Parse a novel landing page.  Volumes come back sorted by ``vid``.

    The returned page may have an empty volume list; callers fall back to
    the catalog page in that case.
    """
    pathname = novel_path(nid)
    soup = _soup(html)
    if _has_text(soup, _TAKEN_DOWN):
        raise ScrapeError(pathname, f"This novel {nid} has been taken down.", missing=True)
    name_node = soup.select_one(".book-info > .book-name")
    if name_node is None:
        raise ScrapeError(pathname)

    name = _text(name_node)
    updated_at = _update_time(soup)
    if not name or updated_at is None:
        return None

    volumes = sorted(parse_volume_list(soup, nid, transform_url), key=lambda v: v.vid)
    return NovelPage(
        nid=nid,
        name=name,
        authors=extract_authors(soup),
        labels=_labels(soup),
        description=_description(soup),
        cover=_cover(soup, transform_url),
        volumes=volumes,
        updated_at=updated_at,
    )


def parse_volume_page(
    html: str,
    nid: int,
    vid: int,
    transform_url: TransformUrl | None = None,
) -> VolumePage | None:
    """Parse a volume page; chapters keep source order."""
    pathname = volume_path(nid, vid)
    soup = _soup(html)
    if _has_text(soup, _TAKEN_DOWN):
        raise ScrapeError(
            pathname, f"This novel {nid} volume {vid} has been taken down.", missing=True
        )
    name_node = soup.select_one(".book-info > .book-name")
    if name_node is None:
        raise ScrapeError(pathname)

    name = _text(name_node)
    updated_at = _update_time(soup)
    if not name or updated_at is None:
        return None

    chapters: list[ChapterRef] = []
    for link in soup.select(".book-new-chapter > .tit > a"):
        match = _CHAPTER_HREF_RE.search(link.get("href", ""))
        title = _text(link)
        if match and title:
            chapters.append(ChapterRef(nid=nid, vid=vid, cid=int(match.group(1)), title=title))

    return VolumePage(
        nid=nid,
        vid=vid,
        name=name,
        authors=extract_authors(soup),
        labels=_labels(soup),
        description=_description(soup),
        cover=_cover(soup, transform_url),
        chapters=chapters,
        updated_at=updated_at,
    )


# ---------------------------------------------------------------------------
# Chapter pages
# ---------------------------------------------------------------------------


def shuffled_order(total: int, cid: int) -> list[int]:
    """Return the permutation the site applies to a chapter's paragraphs.

    ``order[i]`` is the original position of the paragraph served at ``i``.
    """
    if total <= _KEEP_HEAD:
        return list(range(total))
    tail = list(range(_KEEP_HEAD, total))
    seed = cid * 126 + 232
    for j in range(len(tail) - 1, 0, -1):
        seed = (seed * _LCG_MUL + _LCG_INC) % _LCG_MOD
        k = math.floor(seed / _LCG_MOD * (j + 1))
        tail[j], tail[k] = tail[k], tail[j]
    return list(range(_KEEP_HEAD)) + tail


def _is_paragraph(node: object) -> bool:
    return (
        isinstance(node, Tag)
        and node.name == "p"
        and bool(re.sub(r"\s+", "", node.decode_contents()))
    )


def restore_paragraph_order(container: Tag, cid: int) -> None:
    """Put the shuffled paragraphs of *container* back in reading order, in place."""
    nodes = list(container.contents)
    paragraphs = [node for node in nodes if _is_paragraph(node)]
    if not paragraphs:
        return

    order = shuffled_order(len(paragraphs), cid)
    restored: list[Tag | None] = [None] * len(paragraphs)
    for served_at, original_at in enumerate(order):
        restored[original_at] = paragraphs[served_at]

    cursor = 0
    for i, node in enumerate(nodes):
        if _is_paragraph(node):
            nodes[i] = restored[cursor]
            cursor += 1

    container.clear()
    for node in nodes:
        container.append(node)


def _serialize_node(node: object) -> str:
    if isinstance(node, Comment):
        return ""
    if isinstance(node, NavigableString):
        return str(node).strip()
    if not isinstance(node, Tag):
        return ""

    class_name = " ".join(node.get("class", []))
    if any(marker in class_name for marker in ("google", "dag", "ad-slot")):
        return ""
    node_id = node.get("id", "") or ""
    if "hidden-images" in node_id or "show-more-images" in node_id:
        return ""

    if node.name == "br":
        return "<br/>"
    if node.name == "p":
        return f"<p>{node.decode_contents()}</p>"
    if node.name == "img":
        cloned = copy.copy(node)
        if "class" in cloned.attrs:
            del cloned["class"]
        real_src = cloned.get("data-src")
        if real_src:
            del cloned["data-src"]
            cloned["src"] = real_src
        return str(cloned)
    if node.name == "small" and node.find("p") is not None:
        return "".join(_serialize_node(child) for child in node.contents)
    return str(node)


def transform_bbcode(content: str, transform_url: TransformUrl | None = None) -> str:
    """Convert the handful of BBCode tags the site leaves in chapter text to HTML."""
    for bb_tag, html_tag in _BBCODE_TAGS.items():
        pattern = re.compile(rf"\[{bb_tag}\]([\s\S]*?)\[/{bb_tag}\]", re.IGNORECASE)
        content = pattern.sub(rf"<{html_tag}>\1</{html_tag}>", content)

    content = re.sub(
        r"\[url=([^\]]+)\]([\s\S]*?)\[/url\]",
        r'<a href="\1">\2</a>',
        content,
        flags=re.IGNORECASE,
    )

    def _img(match: re.Match[str]) -> str:
        src = _transform(match.group(1).strip(), transform_url) or ""
        return f'<img src="{src}" />'

    content = re.sub(r"\[img\]([\s\S]*?)\[/img\]", _img, content, flags=re.IGNORECASE)
    return re.sub(
        r"\[ruby=([^\]]+)\]([\s\S]*?)\[/ruby\]",
        r"<ruby>\2<rt>\1</rt></ruby>",
        content,
        flags=re.IGNORECASE,
    )


def _rewrite_content_images(content: str, transform_url: TransformUrl) -> str:
    def _replace(match: re.Match[str]) -> str:
        src = match.group(1)
        rewritten = transform_url(src)
        if not rewritten or rewritten == src:
            return match.group(0)
        return match.group(0).replace(src, rewritten)

    return _CONTENT_IMG_RE.sub(_replace, content)


def parse_chapter_title(raw: str) -> tuple[str, int, int | None]:
    """Split ``"Title（2/3）"`` into ``("Title", 2, 3)``; no suffix gives ``(title, 1, None)``."""
    text = raw.strip()
    match = _CHAPTER_TITLE_RE.match(text)
    if match is None:
        return text, 1, None
    return match.group(1).strip(), int(match.group(2)), int(match.group(3))


def parse_chapter_page(
    html: str,
    nid: int,
    cid: int,
    page: int = 1,
    transform_url: TransformUrl | None = None,
) -> ChapterPagePart | None:
    """Parse one physical page of a chapter.

    ``complete`` is ``True`` when this is the last page: either the title
    reports ``current == total`` (for ``current > 1``), or there is no
    "next page" link pointing at another page of the same chapter.
    """
    pathname = chapter_path(nid, cid, page)
    soup = _soup(html)
    if _has_text(soup, _NO_CHAPTER):
        raise ScrapeError(
            pathname,
            f"This novel {nid} and chapter {cid} has been taken down.",
            missing=True,
        )
    heading = soup.select_one("#mlfy_main_text > h1")
    if soup.select_one("#mlfy_main_text") is None or heading is None:
        raise ScrapeError(pathname)

    raw_title = heading.get_text()
    if not raw_title:
        return None
    title, current, total = parse_chapter_title(raw_title)
    if not title or (total is not None and current > total):
        return None

    container = soup.select_one("#mlfy_main_text > #TextContent")
    if container is None:
        return None
    restore_paragraph_order(container, cid)
    content = "".join(_serialize_node(node) for node in container.contents).strip()
    if not content:
        return None
    content = transform_bbcode(content, transform_url)

    images: list[ChapterImage] = []
    for img in container.find_all("img"):
        src = img.get("data-src") or img.get("src")
        if src:
            images.append(ChapterImage(src=_transform(src, transform_url) or src, alt=img.get("alt") or None))
    if transform_url is not None:
        content = _rewrite_content_images(content, transform_url)

    next_link = soup.select_one(".mlfy_page > a:last-child")
    href = next_link.get("href") if next_link is not None else None
    complete = (
        (current > 1 and current == total)
        or not href
        or not href.startswith(f"/novel/{nid}/{cid}_")
    )

    return ChapterPagePart(
        nid=nid,
        cid=cid,
        title=title,
        content=content,
        images=images,
        current=current,
        total=total,
        complete=complete,
    )


def assemble_chapter(nid: int, cid: int, parts: list[ChapterPagePart]) -> ChapterContent | None:
    """Concatenate page contents and images in order; ``None`` when there are no parts."""
    if not parts:
        return None
    images: list[ChapterImage] = []
    for part in parts:
        images.extend(part.images)
    return ChapterContent(
        nid=nid,
        cid=cid,
        title=parts[-1].title,
        content="".join(part.content for part in parts),
        images=images,
    )


# ---------------------------------------------------------------------------
# Listing pages
# ---------------------------------------------------------------------------


def _optional(value: str) -> str | None:
    return value or None


def parse_top_page(
    html: str,
    filter_: TopFilter,
    transform_url: TransformUrl | None = None,
) -> ListingPage:
    soup = _soup(html)
    title = _text(soup.select_one(".rank_i_title_name .active")) or _text(
        soup.select_one(".rank_i_title_name")
    )

    items: list[ListingItem] = []
    for node in soup.select(".rank_d_list"):
        name_link = node.select_one(".rank_d_b_name a")
        cover_link = node.select_one(".rank_d_book_img a")
        href = (name_link.get("href") if name_link is not None else None) or (
            cover_link.get("href") if cover_link is not None else None
        )
        match = _NOVEL_HREF_RE.search(href or "")
        item_title = _text(name_link)
        updated_at = parse_shanghai_datetime(_text(node.select_one(".rank_d_b_time")))
        if not (match and item_title and updated_at):
            continue

        img = node.select_one(".rank_d_book_img img")
        cover = (img.get("data-original") or img.get("src")) if img is not None else None
        meta = [t for t in (_text(a) for a in node.select(".rank_d_b_cate a")) if t]
        meta += [""] * (3 - len(meta))
        latest = _text(node.select_one(".rank_d_b_last a"))
        latest = re.sub(r"^最新章节\s*", "", latest)
        rank_text = _text(node.select_one(".rank_d_b_rank .rank_d_b_num"))

        items.append(
            ListingItem(
                nid=int(match.group(1)),
                title=item_title,
                cover=_transform(cover, transform_url),
                author=_optional(meta[0]),
                library=_optional(meta[1]),
                status=_optional(meta[2]),
                updated_at=updated_at,
                description=_text(node.select_one(".rank_d_b_info")),
                latest_chapter=_optional(latest),
                rank=int(rank_text) if rank_text.isdigit() else None,
            )
        )

    return ListingPage(
        url=BASE_URL + top_path(filter_),
        title=title or None,
        items=items,
        current_page=filter_.page or 1,
        fetched_at=datetime.now(tz=timezone.utc),
    )


def parse_wenku_page(
    html: str,
    filter_: WenkuFilter,
    transform_url: TransformUrl | None = None,
) -> ListingPage:
    soup = _soup(html)

    items: list[ListingItem] = []
    for node in soup.select(".store_collist > .bookbox"):
        link = node.select_one(".bookimg a")
        match = _NOVEL_HREF_RE.search(link.get("href", "") if link is not None else "")
        item_title = _text(node.select_one(".bookname"))
        info = [_text(span) for span in node.select(".bookilnk span")]
        info += [""] * (4 - len(info))
        updated_at = parse_shanghai_datetime(info[3]) if info[3] else None
        if not (match and item_title and updated_at):
            continue

        img = node.select_one(".bookimg img")
        tags_text = _text(node.select_one(".bookupdate b"))
        items.append(
            ListingItem(
                nid=int(match.group(1)),
                title=item_title,
                cover=_transform(img.get("data-original") if img is not None else None, transform_url),
                author=_optional(info[0]),
                library=_optional(info[1]),
                status=_optional(info[2]),
                updated_at=updated_at,
                description=_text(node.select_one(".bookintro")),
                tags=tags_text.split(),
            )
        )

    current_page = filter_.page or 1
    total_pages: int | None = None
    stats = _PAGE_STATS_RE.search(_text(soup.select_one("#pagestats")))
    if stats:
        current_page = int(stats.group(1))
        total_pages = int(stats.group(2)) or None

    return ListingPage(
        url=BASE_URL + wenku_path(filter_),
        items=items,
        current_page=current_page,
        total_pages=total_pages,
        fetched_at=datetime.now(tz=timezone.utc),
    )


# ---------------------------------------------------------------------------
# Fetching scraper
# ---------------------------------------------------------------------------


class LinovelibScraper:
    """Fetch and parse linovelib pages through an :class:`IPageFetcher`.

    Parameters
    ----------
    fetcher:
        Page fetcher, normally the shared browser session.
    transform_url:
        Hook applied to every captured image URL.
    """

    def __init__(self, fetcher: IPageFetcher, transform_url: TransformUrl | None = None) -> None:
        self._fetcher = fetcher
        self._transform_url = transform_url

    async def fetch_novel(self, nid: int) -> NovelPage | None:
        html = await self._fetcher.fetch(novel_path(nid), selector=NOVEL_SELECTOR)
        novel = parse_novel_page(html, nid, self._transform_url)
        if novel is None or novel.volumes:
            return novel

        logger.debug("novel_catalog_fallback", nid=nid)
        catalog_html = await self._fetcher.fetch(catalog_path(nid), selector=NOVEL_SELECTOR)
        catalog = _soup(catalog_html)
        if catalog.select_one(".volume-list > .volume") is None:
            raise ScrapeError(catalog_path(nid))
        volumes = sorted(parse_catalog_volumes(catalog, nid, self._transform_url), key=lambda v: v.vid)
        return novel.model_copy(update={"volumes": volumes})

    async def fetch_volume(self, nid: int, vid: int) -> VolumePage | None:
        html = await self._fetcher.fetch(volume_path(nid, vid), selector=NOVEL_SELECTOR)
        return parse_volume_page(html, nid, vid, self._transform_url)

    async def fetch_chapter_page(self, nid: int, cid: int, page: int = 1) -> ChapterPagePart | None:
        html = await self._fetcher.fetch(chapter_path(nid, cid, page), selector=CHAPTER_SELECTOR)
        return parse_chapter_page(html, nid, cid, page, self._transform_url)

    async def fetch_top(self, filter_: TopFilter) -> ListingPage:
        html = await self._fetcher.fetch(top_path(filter_))
        return parse_top_page(html, filter_, self._transform_url)

    async def fetch_wenku(self, filter_: WenkuFilter) -> ListingPage:
        html = await self._fetcher.fetch(wenku_path(filter_))
        return parse_wenku_page(html, filter_, self._transform_url)
