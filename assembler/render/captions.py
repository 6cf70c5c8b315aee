"""Subtitle burn-in presets and overlay filter construction."""

from dataclasses import dataclass

from assembler.render.filter_graph import Filter, Quoted

DEFAULT_CAPTION_STYLE = "line_box"


@dataclass(frozen=True)
class CaptionStyle:
    """ASS style overrides passed to the subtitles filter as force_style."""

    font_name: str = "Inter"
    font_size: int = 22
    primary_colour: str = "&H00FFFFFF"
    outline_colour: str | None = None
    back_colour: str | None = None
    border_style: int = 1
    outline: int = 0
    shadow: int = 0
    margin_v: int = 40

    def force_style(self) -> str:
        parts = [
            f"FontName={self.font_name}",
            f"FontSize={self.font_size}",
            f"PrimaryColour={self.primary_colour}",
        ]
        if self.outline_colour:
            parts.append(f"OutlineColour={self.outline_colour}")
        if self.back_colour:
            parts.append(f"BackColour={self.back_colour}")
        parts.extend(
            [
                f"BorderStyle={self.border_style}",
                f"Outline={self.outline}",
                f"Shadow={self.shadow}",
                f"MarginV={self.margin_v}",
            ]
        )
        return ",".join(parts)


CAPTION_STYLES: dict[str, CaptionStyle] = {
    # Outlined white text, no box
    "just_text": CaptionStyle(outline_colour="&H00000000", border_style=1, outline=3),
    # Opaque box behind each line (BorderStyle=4)
    "line_box": CaptionStyle(back_colour="&H99000000", border_style=4),
    "word_box": CaptionStyle(back_colour="&HB3000000", border_style=4),
}


def resolve_caption_style(style_name: str | None) -> CaptionStyle:
    """Look up a preset; unknown names fall back to line_box."""
    return CAPTION_STYLES.get(style_name or "", CAPTION_STYLES[DEFAULT_CAPTION_STYLE])


def build_caption_filter(
    captions_path: str | None,
    style_name: str | None,
) -> Filter | None:
    """
    Build the subtitles overlay for the concatenated video stream.

    Returns None unless a captions file is present and the style is set to
    something other than "none".
    """
    if not captions_path or not style_name or style_name == "none":
        return None

    style = resolve_caption_style(style_name)
    return Filter.build(
        "subtitles",
        Quoted(captions_path),
        force_style=Quoted(style.force_style()),
    )
