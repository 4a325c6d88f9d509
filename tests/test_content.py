from datetime import datetime
from pathlib import Path

import pytest

from kiln.content import ContentRepository, FileContentLoader, discover
from kiln.errors import ContentReadError
from kiln.extractors import (
    CompositeMetadataExtractor,
    FrontMatterError,
    extract_frontmatter,
)
from kiln.protocols import MetadataExtractor


def create_site(tmp_path: Path) -> Path:
    site = tmp_path / "site"
    (site / "_posts").mkdir(parents=True)
    (site / "_drafts").mkdir()
    (site / "_layouts").mkdir()
    (site / "_includes").mkdir()
    (site / "docs").mkdir()
    (site / "vendor" / "bundle").mkdir(parents=True)
    (site / "images").mkdir()

    (site / "index.html").write_text(
        "---\ntitle: Home\n---\n<h1>Home</h1>", encoding="utf-8"
    )
    (site / "about.md").write_text("# About Us\n\nHello.", encoding="utf-8")
    (site / "docs" / "guide.md").write_text(
        "---\ntitle: Guide\ntags: [docs]\n---\nRead me.", encoding="utf-8"
    )
    (site / "_posts" / "2021-03-01-folding.md").write_text(
        "---\ntitle: Folding\ncategories: haskell folds\ntags:\n  - foldr\n---\nBody",
        encoding="utf-8",
    )
    (site / "_posts" / "2021-04-10-traversals.markdown").write_text(
        "---\ndate: 2021-04-12 08:30:00\n---\n# Traversals\n", encoding="utf-8"
    )
    (site / "_drafts" / "unfinished.md").write_text("# Draft", encoding="utf-8")
    (site / "_layouts" / "default.html").write_text("{{ content }}", encoding="utf-8")
    (site / "_includes" / "head.html").write_text("<head></head>", encoding="utf-8")
    (site / "vendor" / "bundle" / "README.md").write_text("# Vendor", encoding="utf-8")
    (site / "images" / "logo.png").write_bytes(b"\x89PNG")
    (site / ".hidden.md").write_text("# Hidden", encoding="utf-8")
    (site / "_config.yml").write_text("name: Site\n", encoding="utf-8")
    return site


def test_discover_finds_pages_posts_and_static_files(tmp_path):
    site = create_site(tmp_path)
    found = discover([site], ["vendor"])

    rels = [item.relative_path for item in found.items]
    assert rels == sorted(rels)
    assert set(rels) == {
        "_posts/2021-03-01-folding.md",
        "_posts/2021-04-10-traversals.markdown",
        "about.md",
        "docs/guide.md",
        "index.html",
    }
    assert [s.relative_path for s in found.static_files] == ["images/logo.png"]
    assert not found.errors

    by_rel = {item.relative_path: item for item in found.items}
    folding = by_rel["_posts/2021-03-01-folding.md"]
    assert folding.type == "posts"
    assert folding.is_post
    assert folding.title == "Folding"
    assert folding.slug == "folding"
    assert folding.date == datetime(2021, 3, 1)
    assert folding.categories == ["haskell", "folds"]
    assert folding.tags == ["foldr"]
    assert folding.body == "Body"

    traversals = by_rel["_posts/2021-04-10-traversals.markdown"]
    assert traversals.title == "Traversals"
    assert traversals.date == datetime(2021, 4, 12, 8, 30)
    assert traversals.front_matter["date"] == "2021-04-12 08:30:00"

    about = by_rel["about.md"]
    assert about.type == "pages"
    assert about.title == "About Us"
    assert about.source_type == "markdown"
    assert by_rel["index.html"].source_type == "html"
    assert by_rel["docs/guide.md"].tags == ["docs"]

    assert [p.relative_path for p in found.posts] == [
        "_posts/2021-03-01-folding.md",
        "_posts/2021-04-10-traversals.markdown",
    ]
    assert len(found.pages) == 3


def test_drafts_are_opt_in(tmp_path):
    site = create_site(tmp_path)
    without = discover([site], ["vendor"])
    assert all(item.type != "drafts" for item in without.items)

    with_drafts = discover([site], ["vendor"], include_drafts=True)
    drafts = [item for item in with_drafts.items if item.type == "drafts"]
    assert [d.relative_path for d in drafts] == ["_drafts/unfinished.md"]
    assert drafts[0].is_post


def test_exclude_patterns_win(tmp_path):
    site = create_site(tmp_path)
    found = discover([site], ["vendor", "docs/*.md", "_posts"])
    rels = {item.relative_path for item in found.items}
    assert rels == {"about.md", "index.html"}

    unexcluded = discover([site])
    assert "vendor/bundle/README.md" in {i.relative_path for i in unexcluded.items}


def test_discover_returns_fresh_items(tmp_path):
    site = create_site(tmp_path)
    repository = ContentRepository([site], ["vendor"])
    first = repository.discover()
    second = repository.discover()
    assert [i.relative_path for i in first.items] == [
        i.relative_path for i in second.items
    ]
    assert all(a is not b for a, b in zip(first.items, second.items))


def test_bad_front_matter_is_reported_and_skipped(tmp_path):
    site = create_site(tmp_path)
    (site / "broken.md").write_text("---\ntitle: [oops\n---\nBody", encoding="utf-8")
    (site / "listy.md").write_text("---\n- a\n- b\n---\nBody", encoding="utf-8")

    found = discover([site], ["vendor"])

    rels = {item.relative_path for item in found.items}
    assert "broken.md" not in rels
    assert "listy.md" not in rels
    assert "about.md" in rels
    assert len(found.errors) == 2
    assert all(isinstance(e, ContentReadError) for e in found.errors)
    assert {e.source_path.name for e in found.errors} == {"broken.md", "listy.md"}


def test_impossible_front_matter_date_is_reported(tmp_path):
    site = create_site(tmp_path)
    (site / "odd-date.md").write_text(
        "---\ntitle: Odd\ndate: 2021-13-45\n---\nBody", encoding="utf-8"
    )

    found = discover([site], ["vendor"])

    rels = {item.relative_path for item in found.items}
    assert "odd-date.md" not in rels
    assert "about.md" in rels
    assert len(found.errors) == 1
    assert isinstance(found.errors[0], ContentReadError)
    assert found.errors[0].source_path.name == "odd-date.md"
    assert "month must be in 1..12" in found.errors[0].message


def test_undecodable_file_is_reported(tmp_path):
    site = create_site(tmp_path)
    (site / "latin.md").write_bytes(b"caf\xe9")
    found = discover([site], ["vendor"])
    assert [e.source_path.name for e in found.errors] == ["latin.md"]


def test_missing_root_raises(tmp_path):
    with pytest.raises(ContentReadError):
        discover([tmp_path / "nope"])


def test_loader_classifies_files(tmp_path):
    site = create_site(tmp_path)
    (site / "_posts" / "diagram.svg").write_text("<svg/>", encoding="utf-8")
    loader = FileContentLoader(site, ["vendor"])
    kinds = {p.relative_to(site).as_posix(): kind for p, kind in loader.iter_files()}
    assert kinds["_posts/2021-03-01-folding.md"] == "posts"
    assert kinds["_posts/diagram.svg"] is None
    assert kinds["about.md"] == "pages"
    assert "_layouts/default.html" not in kinds
    assert "_includes/head.html" not in kinds
    assert ".hidden.md" not in kinds
    assert "_config.yml" not in kinds


def test_post_directory_categories(tmp_path):
    site = tmp_path / "site"
    (site / "haskell" / "_posts").mkdir(parents=True)
    (site / "haskell" / "_posts" / "2020-01-01-maps.md").write_text(
        "---\ncategories: [haskell, data]\n---\nx", encoding="utf-8"
    )
    found = discover([site])
    assert found.items[0].categories == ["haskell", "data"]


def test_slug_from_front_matter(tmp_path):
    site = tmp_path / "site"
    (site / "_posts").mkdir(parents=True)
    (site / "_posts" / "2020-01-01-x.md").write_text(
        "---\nslug: Right Folds\n---\nx", encoding="utf-8"
    )
    assert discover([site]).items[0].slug == "right-folds"


def test_extract_frontmatter():
    fm, body = extract_frontmatter("---\ntitle: T\ndate: 2021-01-02\n---\nBody\n")
    assert fm == {"title": "T", "date": "2021-01-02"}
    assert body == "Body\n"

    fm, body = extract_frontmatter("No front matter")
    assert fm == {}
    assert body == "No front matter"

    fm, body = extract_frontmatter("---\n---\nEmpty")
    assert fm == {}
    assert body == "Empty"


def test_extract_frontmatter_errors():
    with pytest.raises(FrontMatterError):
        extract_frontmatter("---\nkey: [bad\n---\n")
    with pytest.raises(FrontMatterError):
        extract_frontmatter("---\njust a string\n---\n")


def test_composite_extractor_accepts_custom_extractors(tmp_path):
    class WordCountExtractor:
        def extract(self, content, path):
            return {"words": len(content.split())}

    extractor = WordCountExtractor()
    assert isinstance(extractor, MetadataExtractor)

    composite = CompositeMetadataExtractor()
    composite.add_extractor(extractor)
    path = tmp_path / "2021-05-06-note.md"
    path.write_text("one two three", encoding="utf-8")
    result = composite.extract("one two three", path)
    assert result["words"] == 3
    assert result["title"] == "Note"
    assert result["date"] == datetime(2021, 5, 6)
