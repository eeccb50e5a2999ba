"""Fixed vocabulary tables for specification reconciliation.

Every table here is immutable and ordered. The name synonym table is walked
in order by the normalizer's substring fallback (first match wins), so the
order of entries is part of the behaviour.

Tables are bundled into a frozen :class:`Vocabulary` so the normalizer,
matcher and curation helpers can be handed a smaller table set in tests.
"""

from dataclasses import dataclass


# Token -> canonical token for specification names.
# Order matters: unmapped tokens are tested for substring containment
# against these keys, top to bottom.
NAME_STANDARDIZATIONS: tuple[tuple[str, str], ...] = (
    ("material", "material"),
    ("grade", "grade"),
    ("thk", "thickness"),
    ("thickness", "thickness"),
    ("type", "type"),
    ("shape", "shape"),
    ("size", "size"),
    ("dimension", "size"),
    ("length", "length"),
    ("width", "width"),
    ("height", "height"),
    ("dia", "diameter"),
    ("diameter", "diameter"),
    ("color", "color"),
    ("colour", "color"),
    ("finish", "finish"),
    ("surface", "finish"),
    ("weight", "weight"),
    ("wt", "weight"),
    ("capacity", "capacity"),
    ("brand", "brand"),
    ("model", "model"),
    ("quality", "quality"),
    ("standard", "standard"),
    ("specification", "spec"),
    ("perforation", "hole"),
    ("hole", "hole"),
    ("pattern", "pattern"),
    ("design", "design"),
    ("application", "application"),
    ("usage", "application"),
)

# Dropped from normalized names (product-form nouns and filler words)
NAME_STOP_WORDS: frozenset[str] = frozenset({
    "sheet", "plate", "pipe", "rod", "bar", "in", "for", "of", "the",
})

# Groups of specification-name words that mean the same attribute.
# "grade" and "standard" must never share a group: material grade (304, MS)
# and compliance standard (IS 2062, ASTM) are different specifications.
NAME_SYNONYM_GROUPS: tuple[tuple[str, ...], ...] = (
    ("material", "composition", "fabric"),
    ("grade", "quality", "class"),
    ("thickness", "thk", "gauge"),
    ("size", "dimension", "measurement"),
    ("diameter", "dia", "bore"),
    ("length", "long", "lng"),
    ("width", "breadth", "wide"),
    ("height", "high", "depth"),
    ("color", "colour", "shade"),
    ("finish", "surface", "coating", "polish"),
    ("weight", "wt", "mass"),
    ("type", "kind", "variety", "style"),
    ("shape", "form", "profile"),
    ("hole", "perforation", "aperture"),
    ("pattern", "design", "arrangement"),
    ("application", "use", "purpose", "usage"),
)

# Option aliases for material grades. Membership alone is not enough to call
# two options equal: the grade token must also agree (304 != 304L).
MATERIAL_GRADE_GROUPS: tuple[tuple[str, ...], ...] = (
    ("304", "ss304", "ss 304", "stainless steel 304"),
    ("304l", "ss304l", "ss 304l", "stainless steel 304l"),
    ("316", "ss316", "ss 316", "stainless steel 316"),
    ("316l", "ss316l", "ss 316l", "stainless steel 316l"),
    ("430", "ss430", "ss 430"),
    ("201", "ss201", "ss 201"),
    ("202", "ss202", "ss 202"),
    ("ms", "mild steel", "carbon steel"),
    ("gi", "galvanized iron"),
    ("aluminium", "aluminum"),
)

# Option aliases for shapes and profiles
SHAPE_GROUPS: tuple[tuple[str, ...], ...] = (
    ("round", "circular", "circle"),
    ("square", "squared"),
    ("rectangular", "rectangle"),
    ("hexagonal", "hexagon"),
    ("flat", "flat bar"),
    ("angle", "l shape", "l-shaped"),
    ("channel", "c shape", "c-shaped"),
    ("pipe", "tube", "tubular"),
    ("slotted", "slot"),
)

# Specification names that describe the listing, not the product
IRRELEVANT_SPEC_TERMS: tuple[str, ...] = (
    "measurement system",
    "no data",
    "n/a",
    "not applicable",
    "availability",
    "price",
    "delivery",
    "shipping",
    "payment",
    "warranty",
    "guarantee",
    "location",
    "seller",
    "vendor",
    "supplier",
)

# Option values that carry no information in extracted text blocks
IRRELEVANT_OPTION_TERMS: tuple[str, ...] = (
    "other",
    "others",
    "etc",
    "n/a",
    "not applicable",
    "no data",
    "none",
    "select",
    "choose",
)

# Placeholder option values removed during final curation.
# Matched as the whole value or as a leading, trailing or inner word.
PLACEHOLDER_OPTIONS: tuple[str, ...] = (
    "other",
    "others",
    "various",
    "etc",
    "etc.",
    "and more",
    "miscellaneous",
    "misc",
    "other options",
    "other values",
    "additional",
    "extra",
    "custom",
    "specify",
    "please specify",
    "enter value",
    "fill in",
    "input required",
    "user defined",
    "customer defined",
    "user input",
    "input here",
    "to be specified",
    "tbd",
    "t.b.d.",
    "to be determined",
    "to be decided",
    "select",
    "choose",
    "pick",
    "option",
    "options",
)


@dataclass(frozen=True)
class Vocabulary:
    """Immutable bundle of the tables used for normalization and matching."""
    name_standardizations: tuple[tuple[str, str], ...] = NAME_STANDARDIZATIONS
    name_stop_words: frozenset[str] = NAME_STOP_WORDS
    name_synonym_groups: tuple[tuple[str, ...], ...] = NAME_SYNONYM_GROUPS
    material_grade_groups: tuple[tuple[str, ...], ...] = MATERIAL_GRADE_GROUPS
    shape_groups: tuple[tuple[str, ...], ...] = SHAPE_GROUPS
    irrelevant_spec_terms: tuple[str, ...] = IRRELEVANT_SPEC_TERMS
    irrelevant_option_terms: tuple[str, ...] = IRRELEVANT_OPTION_TERMS
    placeholder_options: tuple[str, ...] = PLACEHOLDER_OPTIONS

    def standardize(self, token: str) -> str | None:
        """Exact lookup in the name synonym table."""
        for key, canonical in self.name_standardizations:
            if token == key:
                return canonical
        return None


DEFAULT_VOCABULARY = Vocabulary()
