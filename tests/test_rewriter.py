"""Tests for HTML rewriting: archive cleanup, framing meta, rebasing, base and viewport."""

from bs4 import BeautifulSoup

from framerelay.services.rewriter import (
    VIEWPORT_TAG,
    base_origin,
    ensure_base_tag,
    ensure_viewport,
    looks_archived,
    rebase_root_relative,
    rewrite,
    strip_archive_artifacts,
    strip_frame_blocking_meta,
)

SOURCE = "https://example.com/blog/post"

PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta http-equiv="X-Frame-Options" content="DENY">
<meta http-equiv="Content-Security-Policy" content="frame-ancestors 'none'">
<link rel="stylesheet" href="/static/site.css">
<style>.hero { background: url(/img/hero.jpg); } .x { background: url('/img/x.png'); }</style>
</head>
<body>
<a href="/docs">Docs</a>
<a href="//cdn.example.net/lib.js">CDN</a>
<a href="relative/page">Relative</a>
<a href="https://other.org/">Other</a>
<img src="/img/a.png" srcset="/img/a-1x.png 1x, /img/a-2x.png 2x">
<form action="/search"></form>
</body>
</html>"""


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


class TestBaseOrigin:
    def test_origin_of_absolute_url(self):
        assert base_origin("https://Example.com:8443/a/b?q=1") == "https://example.com:8443"

    def test_credentials_are_dropped(self):
        assert base_origin("https://user:pw@example.com/x") == "https://example.com"

    def test_non_http_urls_have_no_origin(self):
        assert base_origin("not a url") is None
        assert base_origin("javascript:alert(1)") is None


class TestRebase:
    def test_root_relative_attributes_become_absolute(self):
        soup = _soup(rewrite(PAGE, SOURCE))

        assert soup.find("a", string="Docs")["href"] == "https://example.com/docs"
        assert soup.find("link")["href"] == "https://example.com/static/site.css"
        assert soup.find("img")["src"] == "https://example.com/img/a.png"
        assert soup.find("form")["action"] == "https://example.com/search"

    def test_protocol_relative_and_absolute_links_untouched(self):
        soup = _soup(rewrite(PAGE, SOURCE))

        assert soup.find("a", string="CDN")["href"] == "//cdn.example.net/lib.js"
        assert soup.find("a", string="Other")["href"] == "https://other.org/"
        assert soup.find("a", string="Relative")["href"] == "relative/page"

    def test_srcset_candidates_are_rebased(self):
        soup = _soup(rewrite(PAGE, SOURCE))

        assert soup.find("img")["srcset"] == (
            "https://example.com/img/a-1x.png 1x, https://example.com/img/a-2x.png 2x"
        )

    def test_css_urls_are_rebased(self):
        html = rewrite(PAGE, SOURCE)

        assert "url(https://example.com/img/hero.jpg)" in html
        assert "url('https://example.com/img/x.png')" in html

    def test_unquoted_attribute(self):
        html = rebase_root_relative("<a href=/docs>Docs</a>", "https://example.com")
        assert html == "<a href=https://example.com/docs>Docs</a>"


class TestBaseTag:
    def test_single_base_follows_head(self):
        html = rewrite(PAGE, SOURCE)
        soup = _soup(html)

        bases = soup.find_all("base")
        assert len(bases) == 1
        assert bases[0]["href"] == "https://example.com/"
        assert html.index("<base") < html.index("<meta charset")

    def test_duplicate_bases_collapse_to_first(self):
        html = '<html><head><base href="https://a.test/"><base href="https://b.test/"></head></html>'
        soup = _soup(ensure_base_tag(html, "https://example.com"))

        bases = soup.find_all("base")
        assert len(bases) == 1
        assert bases[0]["href"] == "https://a.test/"

    def test_base_without_href_gets_one(self):
        html = '<html><head><base target="_blank"></head></html>'
        soup = _soup(ensure_base_tag(html, "https://example.com"))

        base = soup.find("base")
        assert base["href"] == "https://example.com/"
        assert base["target"] == "_blank"

    def test_document_without_head(self):
        html = ensure_base_tag("<html><body><p>x</p></body></html>", "https://example.com")
        assert html.startswith('<html><head><base href="https://example.com/"></head>')

    def test_fragment_without_html_element(self):
        html = ensure_base_tag("<p>x</p>", "https://example.com")
        assert html == '<head><base href="https://example.com/"></head><p>x</p>'

    def test_header_element_is_not_mistaken_for_head(self):
        html = ensure_base_tag("<header>nav</header><p>x</p>", "https://example.com")
        assert html.startswith('<head><base href="https://example.com/"></head><header>')

    def test_doctype_stays_first_without_html_and_head(self):
        html = rewrite("<!DOCTYPE html><title>t</title><body><p>x</p></body>", "https://example.com/page")

        assert html.lower().startswith("<!doctype html>")
        assert html.startswith(
            f'<!DOCTYPE html><head><base href="https://example.com/">{VIEWPORT_TAG}</head><title>'
        )

    def test_bom_and_leading_comment_stay_before_base(self):
        html = ensure_base_tag("\ufeff<!-- generated -->\n<!doctype html><p>x</p>", "https://example.com")

        assert html == (
            '\ufeff<!-- generated -->\n<!doctype html>'
            '<head><base href="https://example.com/"></head><p>x</p>'
        )

    def test_commented_out_base_is_ignored(self):
        html = rewrite(
            '<html><head><!-- <base href="/old/"> --><title>t</title></head><body></body></html>',
            SOURCE,
        )
        soup = _soup(html)

        bases = soup.find_all("base")
        assert len(bases) == 1
        assert bases[0]["href"] == "https://example.com/"
        assert html.startswith(f'<html><head><base href="https://example.com/">{VIEWPORT_TAG}<!--')

    def test_commented_out_head_is_not_an_anchor(self):
        html = ensure_base_tag("<!-- <head> --><html><body></body></html>", "https://example.com")

        assert html == (
            '<!-- <head> --><html><head><base href="https://example.com/"></head><body></body></html>'
        )


class TestViewport:
    def test_inserted_after_base(self):
        html = rewrite(PAGE, SOURCE)
        assert f'<base href="https://example.com/">{VIEWPORT_TAG}' in html

    def test_existing_viewports_are_normalized(self):
        html = (
            '<html><head><meta name="viewport" content="width=1024">'
            '<meta name="viewport" content="user-scalable=no"></head></html>'
        )
        soup = _soup(ensure_viewport(html))

        tags = soup.find_all("meta", attrs={"name": "viewport"})
        assert len(tags) == 1
        assert tags[0]["content"] == "width=device-width, initial-scale=1"

    def test_commented_out_viewport_is_not_normalized_in_place(self):
        html = '<html><head><!-- <meta name="viewport" content="width=1024"> --></head></html>'

        result = ensure_viewport(html)

        assert result.startswith(f"<html><head>{VIEWPORT_TAG}<!--")
        assert '<meta name="viewport" content="width=1024">' in result


class TestFrameDirectives:
    def test_frame_blocking_meta_removed(self):
        soup = _soup(rewrite(PAGE, SOURCE))

        assert soup.find("meta", attrs={"http-equiv": "X-Frame-Options"}) is None
        assert soup.find("meta", attrs={"http-equiv": "Content-Security-Policy"}) is None
        assert soup.find("meta", attrs={"charset": "utf-8"}) is not None

    def test_unquoted_http_equiv(self):
        html = strip_frame_blocking_meta("<head><meta http-equiv=x-frame-options content=sameorigin></head>")
        assert html == "<head></head>"


ARCHIVED = """<html><head>
<script src="//archive.org/includes/analytics.js?v=cf34f82" type="text/javascript"></script>
<script type="text/javascript">window.RufflePlayer=window.RufflePlayer||{};</script>
<script src="/_static/js/wombat.js?v=1" type="text/javascript"></script>
<script>__wm.init("https://web.archive.org/web");</script>
<link rel="stylesheet" type="text/css" href="/_static/css/banner-styles.css?v=1">
<!-- End Wayback Rewrite JS Include -->
<title>Old page</title>
</head><body>
<!-- BEGIN WAYBACK TOOLBAR INSERT -->
<div id="wm-ipp-base">toolbar</div>
<!-- END WAYBACK TOOLBAR INSERT -->
<a href="https://web.archive.org/web/20240101000000/https://example.com/about">About</a>
<img src="/web/20240101000000im_/https://example.com/logo.png">
<p>Archived content</p>
</body></html>
<!--
     FILE ARCHIVED ON 00:00:00 Jan 01, 2024 AND RETRIEVED FROM THE
     INTERNET ARCHIVE ON 00:00:00 Jan 02, 2024.
-->"""


class TestArchiveArtifacts:
    def test_detects_archived_documents(self):
        assert looks_archived(ARCHIVED) is True
        assert looks_archived(PAGE) is False

    def test_strips_toolbar_scripts_and_comments(self):
        html = strip_archive_artifacts(ARCHIVED)

        assert "wm-ipp-base" not in html
        assert "RufflePlayer" not in html
        assert "__wm" not in html
        assert "wombat" not in html
        assert "banner-styles" not in html
        assert "FILE ARCHIVED ON" not in html
        assert "Archived content" in html
        assert "<title>Old page</title>" in html

    def test_unwraps_archived_urls(self):
        soup = _soup(strip_archive_artifacts(ARCHIVED))

        assert soup.find("a")["href"] == "https://example.com/about"
        assert soup.find("img")["src"] == "https://example.com/logo.png"

    def test_links_to_the_archive_on_live_pages_are_kept(self):
        html = '<p><a href="https://web.archive.org/web/2020/https://example.com/">old</a></p>'
        assert strip_archive_artifacts(html) == html


class TestRewrite:
    def test_idempotent(self):
        once = rewrite(PAGE, SOURCE)
        assert rewrite(once, SOURCE) == once

    def test_idempotent_on_archived_document(self):
        once = rewrite(ARCHIVED, SOURCE)
        assert rewrite(once, SOURCE) == once

    def test_without_usable_origin_skips_rebase_and_base(self):
        html = rewrite(PAGE, "not a url")

        assert "<base" not in html
        assert 'href="/docs"' in html
        assert "X-Frame-Options" not in html
        assert VIEWPORT_TAG in html

    def test_empty_document(self):
        assert rewrite("", SOURCE) == ""
