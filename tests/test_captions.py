"""Tests for caption style presets and the subtitles overlay filter."""

from assembler.render.captions import CAPTION_STYLES, build_caption_filter, resolve_caption_style


class TestResolveCaptionStyle:
    def test_known_styles(self):
        for name in ("just_text", "line_box", "word_box"):
            assert resolve_caption_style(name) is CAPTION_STYLES[name]

    def test_unknown_style_falls_back_to_line_box(self):
        assert resolve_caption_style("karaoke") is CAPTION_STYLES["line_box"]
        assert resolve_caption_style(None) is CAPTION_STYLES["line_box"]


class TestForceStyle:
    def test_line_box_uses_opaque_box(self):
        style = CAPTION_STYLES["line_box"].force_style()
        assert "BorderStyle=4" in style
        assert "BackColour=&H99000000" in style
        assert "OutlineColour" not in style

    def test_just_text_is_outlined(self):
        style = CAPTION_STYLES["just_text"].force_style()
        assert "BorderStyle=1" in style
        assert "Outline=3" in style
        assert "BackColour" not in style

    def test_common_fields(self):
        style = CAPTION_STYLES["word_box"].force_style()
        assert style.startswith("FontName=Inter,FontSize=22,PrimaryColour=&H00FFFFFF")
        assert style.endswith("MarginV=40")


class TestBuildCaptionFilter:
    def test_none_style_disables_captions(self):
        assert build_caption_filter("/tmp/render-1/captions.srt", "none") is None

    def test_missing_style_disables_captions(self):
        assert build_caption_filter("/tmp/render-1/captions.srt", None) is None

    def test_missing_file_disables_captions(self):
        assert build_caption_filter(None, "line_box") is None

    def test_filter_is_quoted_and_escaped(self):
        f = build_caption_filter("/tmp/render-1/captions.srt", "word_box")

        text = f.serialize()
        assert text.startswith("subtitles='/tmp/render-1/captions.srt':force_style='")
        assert "FontName=Inter,FontSize=22" in text
        assert text.endswith("'")

    def test_path_with_quote_and_colon(self):
        f = build_caption_filter("/tmp/it's:here/captions.srt", "line_box")

        assert f.serialize().startswith("subtitles='/tmp/it'\\''s\\:here/captions.srt'")

    def test_unknown_style_still_burns_captions(self):
        f = build_caption_filter("/tmp/c.srt", "fancy")

        assert f is not None
        assert "BorderStyle=4" in f.serialize()
