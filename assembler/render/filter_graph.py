"""
Typed filter graph representation for FFmpeg.

Audio and video filter expressions are assembled from ``Filter`` nodes grouped
into labelled ``FilterChain`` objects, and serialized to FFmpeg's textual
syntax only here. Values wrapped in ``Quoted`` are quoted and escaped by the
serializer, so no caller builds escaped strings by hand.
"""

from dataclasses import dataclass, field
from typing import Any


class Quoted(str):
    """A filter option value that must be single-quoted and escaped (paths, styles)."""


def escape_filter_value(value: str) -> str:
    """Escape a value for use inside a quoted filter option.

    Quotes close the quoted section, emit an escaped quote and reopen it;
    colons are escaped because they separate filter options.
    """
    return value.replace("'", "'\\''").replace(":", "\\:")


def format_value(value: Any) -> str:
    """Render a single option value in FFmpeg syntax."""
    if isinstance(value, Quoted):
        return f"'{escape_filter_value(value)}'"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


@dataclass(frozen=True)
class Filter:
    """One filter node, e.g. ``afade=t=out:st=28.5:d=1.5``."""

    name: str
    positional: tuple[Any, ...] = ()
    options: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def build(cls, name: str, *positional: Any, **options: Any) -> "Filter":
        return cls(name=name, positional=tuple(positional), options=tuple(options.items()))

    def option(self, key: str) -> Any:
        for k, v in self.options:
            if k == key:
                return v
        raise KeyError(key)

    def serialize(self) -> str:
        parts = [format_value(v) for v in self.positional]
        parts.extend(f"{k}={format_value(v)}" for k, v in self.options)
        if not parts:
            return self.name
        return f"{self.name}=" + ":".join(parts)


@dataclass(frozen=True)
class FilterChain:
    """A linear chain of filters with labelled inputs and outputs."""

    filters: tuple[Filter, ...]
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    def relabel_output(self, label: str) -> "FilterChain":
        return FilterChain(filters=self.filters, inputs=self.inputs, outputs=(label,))

    def filter_names(self) -> list[str]:
        return [f.name for f in self.filters]

    def serialize(self) -> str:
        head = "".join(f"[{label}]" for label in self.inputs)
        tail = "".join(f"[{label}]" for label in self.outputs)
        body = ",".join(f.serialize() for f in self.filters)
        return f"{head}{body}{tail}"


@dataclass
class FilterGraph:
    """An ordered set of chains joined with ``;``."""

    chains: list[FilterChain] = field(default_factory=list)

    def add(self, chain: FilterChain) -> None:
        self.chains.append(chain)

    def find(self, output_label: str) -> FilterChain | None:
        for chain in self.chains:
            if output_label in chain.outputs:
                return chain
        return None

    def serialize(self) -> str:
        return ";".join(chain.serialize() for chain in self.chains)

    def __str__(self) -> str:
        return self.serialize()
