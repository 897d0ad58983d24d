"""Tests for heading-based image alt text."""

from moose.edits import apply_edits
from moose.image_alt import (
    assign_alt_text,
    extract_headings,
    extract_images,
    get_file_extension,
    sanitize_alt_text,
)


def _alts(content: str, overwrite: bool = False) -> str:
    return apply_edits(content, assign_alt_text(content, overwrite).edits)


class TestExtraction:
    def test_extract_images(self):
        images = extract_images("x ![one](a.png) y ![](b.png)")
        assert [(i.alt_text, i.url, i.position) for i in images] == [
            ("one", "a.png", 2),
            ("", "b.png", 18),
        ]

    def test_images_in_code_blocks_ignored(self):
        content = "![](a.png)\n```\n![](b.png)\n```\n![](c.png)"
        assert [i.url for i in extract_images(content)] == ["a.png", "c.png"]

    def test_extract_headings(self):
        headings = extract_headings("# Title\ntext\n### Deep one  \n#NoSpace")
        assert [(h.text, h.level) for h in headings] == [("Title", 1), ("Deep one", 3)]


class TestHelpers:
    def test_sanitize(self):
        assert sanitize_alt_text("  Setup & Install (v2)! ") == "Setup  Install v2"

    def test_file_extension(self):
        assert get_file_extension("https://x.com/pic.PNG?w=10#frag") == "png"

    def test_file_extension_missing(self):
        assert get_file_extension("https://x.com/picture") == "image"


class TestAssignAltText:
    def test_nearest_preceding_heading(self):
        content = "# Title\n![](a.png)\n## Sub\n![](b.png)"
        assert _alts(content, overwrite=True) == (
            "# Title\n![Title](a.png)\n## Sub\n![Sub](b.png)"
        )

    def test_image_before_first_heading_uses_title(self):
        content = "![](top.png)\n# Guide\ntext"
        assert _alts(content) == "![Guide](top.png)\n# Guide\ntext"

    def test_no_headings_uses_extension(self):
        assert _alts("![](photo.JPG)\n![](https://x.com/img)") == (
            "![jpg](photo.JPG)\n![image](https://x.com/img)"
        )

    def test_duplicates_are_numbered(self):
        content = "# Setup\n![](a.png)\n![](b.png)\n![](c.png)"
        assert _alts(content) == (
            "# Setup\n![Setup](a.png)\n![Setup 02](b.png)\n![Setup 03](c.png)"
        )

    def test_existing_alt_kept_without_overwrite(self):
        content = "# Setup\n![Custom](a.png)\n![](b.png)"
        assert _alts(content) == "# Setup\n![Custom](a.png)\n![Setup](b.png)"

    def test_overwrite_replaces_existing(self):
        content = "# Setup\n![Custom](a.png)"
        assert _alts(content, overwrite=True) == "# Setup\n![Setup](a.png)"

    def test_heading_is_sanitized(self):
        assert _alts("# C++ & Rust!\n![](a.png)") == "# C++ & Rust!\n![C  Rust](a.png)"

    def test_code_block_images_untouched(self):
        content = "# Doc\n```md\n![](inside.png)\n```\n![](outside.png)"
        result = assign_alt_text(content)

        assert result.replaced == 1
        assert _alts(content).endswith("```\n![Doc](outside.png)")
        assert "![](inside.png)" in _alts(content)

    def test_second_run_is_idempotent(self):
        content = "# A\n![](1.png)\n![](2.png)\n## B\n![x](3.png)\n![](4.png)"
        once = _alts(content)
        assert assign_alt_text(once).replaced == 0

    def test_no_edit_when_alt_already_matches(self):
        result = assign_alt_text("# Title\n![Title](a.png)", overwrite_existing=True)
        assert result.replaced == 0
        assert len(result.images) == 1

    def test_no_images(self):
        result = assign_alt_text("# Just text")
        assert result.images == []
        assert result.edits == []

    def test_edits_use_original_offsets(self):
        content = "# H\n![](a.png) and ![](b.png)"
        result = assign_alt_text(content)
        assert [(e.start, e.end) for e in result.edits] == [(4, 14), (19, 29)]
