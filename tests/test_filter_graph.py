"""Tests for the typed filter graph and its serializer."""

from assembler.render.filter_graph import (
    Filter,
    FilterChain,
    FilterGraph,
    Quoted,
    escape_filter_value,
    format_value,
)


class TestFormatValue:
    """Tests for option value formatting."""

    def test_integral_floats_drop_decimal(self):
        assert format_value(2.0) == "2"
        assert format_value(30.0) == "30"

    def test_fractional_floats_keep_precision(self):
        assert format_value(1.5) == "1.5"
        assert format_value(0.08) == "0.08"
        assert format_value(28.125) == "28.125"

    def test_plain_strings_and_ints(self):
        assert format_value("stereo") == "stereo"
        assert format_value(44100) == "44100"

    def test_quoted_values_are_wrapped_and_escaped(self):
        assert format_value(Quoted("/tmp/a.srt")) == "'/tmp/a.srt'"


class TestEscaping:
    """Tests for quote/colon escaping."""

    def test_colons_are_escaped(self):
        assert escape_filter_value("C:/captions.srt") == "C\\:/captions.srt"

    def test_quotes_close_and_reopen(self):
        assert escape_filter_value("it's.srt") == "it'\\''s.srt"

    def test_both(self):
        assert escape_filter_value("a'b:c") == "a'\\''b\\:c"


class TestFilter:
    """Tests for a single filter node."""

    def test_named_options_keep_order(self):
        f = Filter.build("aformat", sample_fmts="fltp", sample_rates=44100, channel_layouts="stereo")
        assert f.serialize() == "aformat=sample_fmts=fltp:sample_rates=44100:channel_layouts=stereo"

    def test_positional_then_named(self):
        f = Filter.build("scale", 1920, 1080, force_original_aspect_ratio="decrease")
        assert f.serialize() == "scale=1920:1080:force_original_aspect_ratio=decrease"

    def test_no_arguments(self):
        assert Filter.build("anull").serialize() == "anull"

    def test_option_lookup(self):
        f = Filter.build("afade", t="out", st=28.5, d=1.5)
        assert f.option("st") == 28.5


class TestFilterGraph:
    """Tests for chains and graphs."""

    def test_chain_with_labels(self):
        chain = FilterChain(
            filters=(Filter.build("volume", 0.5), Filter.build("afade", t="in", d=2.0)),
            inputs=("2:a",),
            outputs=("m0",),
        )
        assert chain.serialize() == "[2:a]volume=0.5,afade=t=in:d=2[m0]"

    def test_chain_without_labels_is_a_plain_filter_list(self):
        chain = FilterChain(filters=(Filter.build("fps", 30), Filter.build("tpad", stop_mode="clone", stop_duration=3)))
        assert chain.serialize() == "fps=30,tpad=stop_mode=clone:stop_duration=3"

    def test_relabel_output(self):
        chain = FilterChain(filters=(Filter.build("anull"),), inputs=("1:a",), outputs=("nar",))
        assert chain.relabel_output("audio").serialize() == "[1:a]anull[audio]"

    def test_graph_joins_chains_with_semicolons(self):
        graph = FilterGraph()
        graph.add(FilterChain(filters=(Filter.build("anull"),), inputs=("1:a",), outputs=("a",)))
        graph.add(FilterChain(filters=(Filter.build("anull"),), inputs=("2:a",), outputs=("b",)))
        assert str(graph) == "[1:a]anull[a];[2:a]anull[b]"
        assert graph.find("b").inputs == ("2:a",)
        assert graph.find("missing") is None
