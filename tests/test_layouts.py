from datetime import datetime
from pathlib import Path

from kiln.config import DefaultRule, Scope, parse_config
from kiln.content import ContentItem
from kiln.layouts import LayoutResolver, resolve, resolve_values, scope_matches


def make_item(relative_path: str, type: str = "pages", **front_matter) -> ContentItem:
    return ContentItem(
        type=type,
        path=Path("/site") / relative_path,
        relative_path=relative_path,
        front_matter=front_matter,
        body="",
        title="T",
        date=datetime(2021, 1, 1),
        slug="t",
    )


def rule(layout: str, path: str = "", type: str | None = None, **values) -> DefaultRule:
    return DefaultRule(scope=Scope(path=path, type=type), values={"layout": layout, **values})


def test_typed_rule_before_catch_all():
    rules = [rule("page", type="pages"), rule("default")]
    assert resolve(make_item("about.md"), rules) == "page"
    assert resolve(make_item("docs/guide.md"), rules) == "page"
    assert resolve(make_item("_posts/2021-01-01-x.md", "posts"), rules) == "default"


def test_first_match_wins_over_specificity():
    # Declared order decides, so a leading catch-all shadows later rules
    config = parse_config(
        "defaults:\n"
        "  - {scope: {path: ''}, values: {layout: default}}\n"
        "  - {scope: {path: '', type: pages}, values: {layout: page}}\n"
        "  - {scope: {path: '', type: posts}, values: {layout: post}}\n"
    )
    resolver = LayoutResolver(config.defaults)
    assert resolver.resolve(make_item("about.md")) == "default"
    assert resolver.resolve(make_item("_posts/2021-01-01-x.md", "posts")) == "default"


def test_front_matter_layout_overrides_rules():
    rules = [rule("page")]
    assert resolve(make_item("about.md", layout="wide"), rules) == "wide"


def test_fallback_when_nothing_matches():
    rules = [rule("post", type="posts")]
    assert resolve(make_item("about.md"), rules) == "default"
    assert resolve(make_item("about.md"), rules, fallback="base") == "base"
    assert resolve(make_item("about.md"), []) == "default"


def test_rules_without_layout_are_skipped():
    rules = [
        DefaultRule(scope=Scope(), values={"author": "Ada"}),
        rule("page"),
    ]
    assert resolve(make_item("about.md"), rules) == "page"


def test_scope_path_matches_whole_segments():
    scope = Scope(path="docs")
    assert scope_matches(scope, make_item("docs/guide.md"))
    assert scope_matches(scope, make_item("docs"))
    assert not scope_matches(scope, make_item("docsite/index.md"))
    assert scope_matches(Scope(path="/docs/"), make_item("docs/a/b.md"))
    assert not scope_matches(Scope(type="posts"), make_item("docs/guide.md"))


def test_path_rule_before_typed_rule():
    rules = [rule("doc", path="docs"), rule("page", type="pages")]
    assert resolve(make_item("docs/guide.md"), rules) == "doc"
    assert resolve(make_item("about.md"), rules) == "page"


def test_resolve_values_merges_front_matter():
    rules = [rule("post", type="posts", author="Ada", comments=True)]
    item = make_item("_posts/2021-01-01-x.md", "posts", comments=False)
    values = resolve_values(item, rules)
    assert values == {"layout": "post", "author": "Ada", "comments": False}

    resolver = LayoutResolver(rules, fallback="base")
    assert resolver.values(make_item("about.md")) == {"layout": "base"}
