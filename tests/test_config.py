from pathlib import Path

import pytest

from kiln.config import (
    DEFAULT_PERMALINK,
    SiteConfig,
    load_config,
    parse_config,
)
from kiln.errors import ConfigParseError, ConfigValidationError

SITE_CONFIG = """\
name: Haskell School
url: https://example.com/
baseurl: ""
permalink: /blog/:title/
default_lang: en
encoding: utf-8
plugins:
  - jekyll-assets
  - jekyll-sitemap
  - kramdown
  - uglifier
  - jekyll-archives
markdown: kramdown
kramdown:
  input: GFM
  syntax_highlighter: rouge
exclude:
  - Gemfile
  - Gemfile.lock
  - vendor
assets:
  compress:
    css: sass
    js: uglifier
  digest: true
  sources:
    - _assets/images
    - _assets/javascripts
    - _assets/stylesheets
    - _assets/fonts
ghc_version: 9.0
sitemap:
  file: /sitemap.xml
  include_posts:
    - /index.html
  change_frequency_name: change_frequency
  priority_name: priority
jekyll-archives:
  enabled:
    - categories
    - tags
    - year
  layout: archive
  permalinks:
    year: /blog/years/:year/
    category: /blog/categories/:name/
    tag: /blog/tags/:name/
defaults:
  - scope:
      path: ""
    values:
      layout: default
  - scope:
      path: ""
      type: pages
    values:
      layout: page
  - scope:
      path: ""
      type: posts
    values:
      layout: post
empty_array: []
"""


def test_parse_full_site_config():
    config = parse_config(SITE_CONFIG)

    assert config.name == "Haskell School"
    assert config.url == "https://example.com"
    assert config.permalink == "/blog/:title/"
    assert config.has_plugin("jekyll-archives")
    assert not config.has_plugin("jekyll-feed")
    assert config.kramdown.input == "GFM"
    assert config.kramdown.syntax_highlighter == "rouge"
    assert config.assets.digest is True
    assert config.assets.compress_css == "sass"
    assert config.assets.compress_js == "uglifier"
    assert config.assets.sources[0] == "_assets/images"
    assert config.sitemap.include_posts == ("/index.html",)
    assert config.archives.enabled == ("categories", "tags", "year")
    assert config.archives.permalinks["category"] == "/blog/categories/:name/"
    # Unset archive permalinks keep their defaults
    assert config.archives.permalinks["month"] == "/:year/:month/"

    assert [rule.layout for rule in config.defaults] == ["default", "page", "post"]
    assert config.defaults[1].scope.type == "pages"
    assert config.defaults[0].scope.type is None

    assert config.extra["ghc_version"] == 9.0
    assert config.extra["empty_array"] == []


def test_excludes_include_builtin_patterns():
    config = parse_config("exclude: [vendor, Gemfile]")
    assert config.excludes[:2] == ("vendor", "Gemfile")
    assert "_site" in config.excludes
    assert "_config.yml" in config.excludes


def test_empty_config_uses_defaults():
    config = parse_config("")
    assert config == SiteConfig()
    assert config.permalink == DEFAULT_PERMALINK
    assert config.destination == "_site"


def test_missing_permalink_falls_back_to_default():
    config = parse_config("name: Blog\n")
    assert config.permalink == DEFAULT_PERMALINK


def test_load_config_missing_file_returns_defaults(tmp_path):
    config = load_config(tmp_path / "_config.yml")
    assert config == SiteConfig()


def test_load_config_reads_file(tmp_path):
    path = tmp_path / "_config.yml"
    path.write_text("name: From Disk\n", encoding="utf-8")
    assert load_config(path).name == "From Disk"


def test_malformed_yaml_raises_parse_error(tmp_path):
    path = tmp_path / "_config.yml"
    path.write_text("name: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigParseError) as exc_info:
        load_config(path)
    assert exc_info.value.source_path == path
    assert "Malformed YAML" in exc_info.value.message


def test_impossible_date_raises_parse_error():
    with pytest.raises(ConfigParseError) as exc_info:
        parse_config("built: 2021-13-45\n")
    assert isinstance(exc_info.value.original_error, ValueError)


def test_non_mapping_document_raises_parse_error():
    with pytest.raises(ConfigParseError):
        parse_config("- just\n- a list\n")


@pytest.mark.parametrize(
    "text",
    [
        "defaults: {layout: page}",
        "defaults:\n  - scope: {path: ''}\n",
        "defaults:\n  - scope: nope\n    values: {layout: page}\n",
        "kramdown: {input: textile}",
        "kramdown: {syntax_highlighter: coderay}",
        "assets: {digest: sometimes}",
        "assets: [a, b]",
        "jekyll-archives: {enabled: [weeks]}",
        "jekyll-archives: {permalinks: {year: 2020}}",
        "exclude: {vendor: true}",
        "name: [a, b]",
    ],
)
def test_wrong_shapes_raise_validation_error(text):
    with pytest.raises(ConfigValidationError):
        parse_config(text)


def test_parse_error_is_not_validation_error():
    with pytest.raises(ConfigParseError) as exc_info:
        parse_config("a: b: c")
    assert not isinstance(exc_info.value, ConfigValidationError)


def test_archives_key_alias():
    config = parse_config("archives:\n  enabled: [year]\n")
    assert config.archives.enabled == ("year",)
    assert config.archives.layout == "archive"


def test_syntax_highlighter_disabled():
    config = parse_config("kramdown:\n  syntax_highlighter: false\n")
    assert config.kramdown.syntax_highlighter == "none"


def test_with_overrides_ignores_none():
    config = parse_config("url: https://example.com")
    assert config.with_overrides(url=None) is config
    assert config.with_overrides(url="https://other.test").url == "https://other.test"


def test_template_vars_merge_extra_keys():
    config = parse_config("name: School\ntitle: The School\nghc_version: 9.0\n")
    site = config.template_vars()
    assert site["name"] == "School"
    assert site["title"] == "The School"
    assert site["ghc_version"] == 9.0
    assert site["lang"] == "en"


def test_defaults_values_reject_unsupported_types():
    text = "defaults:\n  - scope: {path: ''}\n    values: {when: !!binary aGk=}\n"
    with pytest.raises(ConfigValidationError):
        parse_config(text, Path("_config.yml"))
