# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/processing.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Fixture data processing.

``DataProcessor.process(data, context)`` returns a new document with:

- reference tokens (``@customer``) replaced by the referenced value from
  ``context.references``; unknown names are kept verbatim,
- placeholders replaced: ``{faker.email}`` (or ``{fake:email}``),
  ``{env.BASE_URL}``, ``{context.tenant.id}``, ``{addresses[0].id}``
  and bare list names such as ``{tags}``. A value that is a single
  placeholder keeps the resolved type, mixed text is interpolated,
- ``@include: <fixture>`` keys replaced by the named fixture's ``data``
  deep-merged underneath the record's own fields.

Inside one mapping, values whose placeholders read a sibling field
(``{addresses[0].id}`` next to ``addresses``) are resolved after every other
field of that mapping, against the processed siblings.

Examples:
    >>> processor = DataProcessor(seed=1)
    >>> context = ProcessingContext(references={"customer": "c-1"}, system_data={"tags": ["a", "b"]})
    >>> processor.process({"owner": "@customer", "tags": "{tags}", "missing": "@nobody"}, context)
    {'owner': 'c-1', 'tags': ['a', 'b'], 'missing': '@nobody'}
"""

# Standard
from dataclasses import dataclass, field, replace
from datetime import timezone
import logging
import os
import re
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

# Third-Party
from faker import Faker
import orjson

# First-Party
from fixtureforge.document import deep_merge, is_reference, reference_name
from fixtureforge.errors import FixtureIncludeError
from fixtureforge.models import FixtureDefinition

logger = logging.getLogger(__name__)

INCLUDE_DIRECTIVE = "@include"
PLACEHOLDER_PATTERN = re.compile(r"\{([^{}]+)\}")
SINGLE_PLACEHOLDER_PATTERN = re.compile(r"^\{([^{}]+)\}$")
ARRAY_PROPERTY_PATTERN = re.compile(r"^([^\[]+)\[(\d+)\]\.(.+)$")
ARRAY_ITEM_PATTERN = re.compile(r"^([^\[]+)\[(\d+)\]$")
PLACEHOLDER_HEAD_PATTERN = re.compile(r"[\[.:]")
RESERVED_HEADS = frozenset({"faker", "fake", "env", "context"})
UNRESOLVED_CONTEXT_VALUE = "undefined"

FakeGenerator = Callable[[Faker], Any]


def _aliases(generator: FakeGenerator, *names: str) -> Dict[str, FakeGenerator]:
    return {name: generator for name in names}


FAKE_GENERATORS: Dict[str, FakeGenerator] = {
    # Person
    **_aliases(lambda f: f.email(), "email", "internet.email"),
    **_aliases(lambda f: f.first_name(), "firstName", "person.firstName"),
    **_aliases(lambda f: f.last_name(), "lastName", "person.lastName"),
    **_aliases(lambda f: f.name(), "fullName", "person.fullName"),
    **_aliases(lambda f: f.user_name(), "username", "internet.userName"),
    **_aliases(lambda f: f.password(), "password", "internet.password"),
    # Company
    **_aliases(lambda f: f.company(), "company", "company.name"),
    **_aliases(lambda f: f.job(), "jobTitle", "job_title", "person.jobTitle"),
    # Address
    **_aliases(lambda f: f.street_address(), "address", "street", "location.streetAddress"),
    **_aliases(lambda f: f.city(), "city", "location.city"),
    **_aliases(lambda f: f.postcode(), "zipCode", "zipcode", "location.zipCode"),
    **_aliases(lambda f: f.country(), "country", "location.country"),
    **_aliases(lambda f: f.state(), "state", "location.state"),
    # Communication
    **_aliases(lambda f: f.phone_number(), "phone", "phone.number"),
    **_aliases(lambda f: f.url(), "url", "internet.url"),
    **_aliases(lambda f: f.pystr(min_chars=8, max_chars=8), "alphanumeric", "string.alphanumeric"),
    # Identifiers
    **_aliases(lambda f: f.uuid4().replace("-", ""), "uuid", "string.uuid"),
    **_aliases(lambda f: f.slug(), "slug", "string.slug"),
    # Numbers
    **_aliases(lambda f: f.random_int(min=1, max=1000), "number", "number.int"),
    **_aliases(lambda f: round(f.pyfloat(min_value=0, max_value=100), 2), "float", "number.float"),
    "price": lambda f: f"{f.pyfloat(min_value=1, max_value=1000):.2f}",
    **_aliases(lambda f: f.pybool(), "boolean", "datatype.boolean"),
    # Dates
    **_aliases(lambda f: f.date_time_between(start_date="-1d", tzinfo=timezone.utc).isoformat(), "date", "date.recent"),
    **_aliases(lambda f: f.past_datetime(start_date="-365d", tzinfo=timezone.utc).isoformat(), "date_past", "date.past"),
    **_aliases(lambda f: f.future_datetime(end_date="+365d", tzinfo=timezone.utc).isoformat(), "futureDate", "date_future", "date.future"),
    **_aliases(lambda f: f.date_of_birth().isoformat(), "birthdate", "date.birthdate"),
    # Text
    **_aliases(lambda f: f.word(), "word", "lorem.word"),
    **_aliases(lambda f: " ".join(f.words()), "words", "lorem.words"),
    **_aliases(lambda f: f.sentence(), "sentence", "lorem.sentence"),
    **_aliases(lambda f: f.paragraph(), "paragraph", "lorem.paragraph"),
    **_aliases(lambda f: f.text(), "text", "lorem.text"),
    # Commerce
    **_aliases(lambda f: f.catch_phrase(), "product", "commerce.productName"),
    **_aliases(lambda f: f.word().title(), "department", "commerce.department"),
    **_aliases(lambda f: f.sentence(nb_words=12), "product_description", "commerce.productDescription"),
    # Finance
    **_aliases(lambda f: f.iban(), "iban", "finance.iban"),
    **_aliases(lambda f: f.credit_card_number(), "credit_card", "finance.creditCardNumber"),
    "it_postal_code": lambda f: f.numerify("#####"),
}

# Generators that need the Italian locale regardless of the configured one.
ITALIAN_GENERATORS: Dict[str, FakeGenerator] = {
    **_aliases(lambda f: f.ssn(), "italianTaxNumber", "it_tax_number"),
    **_aliases(lambda f: f.vat_id(), "italianVATNumber", "it_vat_number"),
}

_NON_GENERATOR_ATTRIBUTES = frozenset({"seed", "seed_instance", "seed_locale"})


def _snake_case(name: str) -> str:
    """Convert a camelCase generator name to a Faker method name.

    Examples:
        >>> _snake_case("ipv4Public")
        'ipv4_public'
    """
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _lookup(value: Any, parts: List[str]) -> Any:
    """Follow mapping keys (and list indices) down a nested value.

    Returns:
        The nested value, or None when the path does not exist.

    Examples:
        >>> _lookup({"a": [{"b": 1}]}, ["a", "0", "b"])
        1
        >>> _lookup({"a": 1}, ["x"]) is None
        True
    """
    for part in parts:
        if isinstance(value, dict):
            value = value.get(part)
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            return None
    return value


def _to_text(value: Any) -> str:
    """Render a resolved value for interpolation into a larger string."""
    if isinstance(value, str):
        return value
    return orjson.dumps(value, default=str).decode()


@dataclass
class ProcessingContext:
    """Values visible to placeholder and reference resolution.

    Attributes:
        references: Fixture name (or system key) -> resolved value.
        system_data: Caller supplied data, also the source of root level lists.
        fixtures: Fixtures of the current document, used by ``@include``.
        data: Values exposed as ``{context.*}``.
        current_data: Sibling fields of the mapping being processed.
        include_chain: Fixtures already included on the way to this value.
    """

    references: Mapping[str, Any] = field(default_factory=dict)
    system_data: Mapping[str, Any] = field(default_factory=dict)
    fixtures: Optional[Mapping[str, FixtureDefinition]] = None
    data: Mapping[str, Any] = field(default_factory=dict)
    current_data: Optional[Mapping[str, Any]] = None
    include_chain: Tuple[str, ...] = ()


class DataProcessor:
    """Resolve references, placeholders and entity includes in fixture data.

    ``process`` never modifies its input and can be called any number of
    times on the same document.
    """

    def __init__(self, locale: str = "en_US", seed: Optional[int] = None, faker: Optional[Faker] = None):
        """Initialize the processor.

        Args:
            locale: Faker locale for ``{faker.*}`` placeholders.
            seed: Optional seed for reproducible fake data.
            faker: Pre-configured Faker instance, overrides ``locale``.
        """
        self.faker = faker or Faker(locale)
        self._seed = seed
        if seed is not None:
            self.faker.seed_instance(seed)
        self._italian_faker: Optional[Faker] = None

    def process(self, data: Any, context: Optional[ProcessingContext] = None) -> Any:
        """Return a processed copy of ``data``.

        Args:
            data: Any document node.
            context: Resolution context; an empty one when omitted.

        Returns:
            The processed node.

        Raises:
            FixtureIncludeError: If an ``@include`` cannot be resolved.
        """
        context = context or ProcessingContext()
        if isinstance(data, str):
            return self._process_string(data, context)
        if isinstance(data, list):
            return [self.process(item, context) for item in data]
        if isinstance(data, dict):
            return self._process_mapping(data, context)
        return data

    def _process_mapping(self, data: Dict[str, Any], context: ProcessingContext) -> Dict[str, Any]:
        while INCLUDE_DIRECTIVE in data:
            data, context = self._apply_include(data, context)

        queued = [key for key, value in data.items() if self._reads_sibling(value, data)]
        inner = replace(context, current_data=data)
        processed: Dict[str, Any] = {}
        for key, value in data.items():
            processed[key] = value if key in queued else self.process(value, inner)

        # siblings are final now; flush the queue once for this mapping
        final = replace(context, current_data=processed)
        for key in queued:
            processed[key] = self._process_string(data[key], final)
        return processed

    @staticmethod
    def _reads_sibling(value: Any, siblings: Mapping[str, Any]) -> bool:
        """Tell whether a string value has a placeholder naming a sibling field.

        Examples:
            >>> DataProcessor._reads_sibling("{addresses[0].id}", {"addresses": []})
            True
            >>> DataProcessor._reads_sibling("{faker.email}", {"faker": 1})
            False
        """
        if not isinstance(value, str):
            return False
        for placeholder in PLACEHOLDER_PATTERN.findall(value):
            head = PLACEHOLDER_HEAD_PATTERN.split(placeholder, maxsplit=1)[0]
            if head not in RESERVED_HEADS and head in siblings:
                return True
        return False

    def _apply_include(self, data: Dict[str, Any], context: ProcessingContext) -> Tuple[Dict[str, Any], ProcessingContext]:
        """Replace an ``@include`` key by the named fixture's data.

        Raises:
            FixtureIncludeError: Without fixtures in context, for unknown names or include loops.
        """
        name = data[INCLUDE_DIRECTIVE]
        if context.fixtures is None:
            raise FixtureIncludeError(f"Cannot process {INCLUDE_DIRECTIVE} directive: no fixtures available in context")
        if not isinstance(name, str):
            raise FixtureIncludeError(f"{INCLUDE_DIRECTIVE} directive must name a fixture, got {type(name).__name__}")
        if name in context.include_chain:
            chain = " -> ".join([*context.include_chain, name])
            raise FixtureIncludeError(f"Circular {INCLUDE_DIRECTIVE} detected: {chain}")

        fixture = context.fixtures.get(name)
        if fixture is None:
            raise FixtureIncludeError(f"Fixture key '{name}' not found for {INCLUDE_DIRECTIVE} directive")

        base = fixture.data if isinstance(fixture.data, dict) else {}
        own = {key: value for key, value in data.items() if key != INCLUDE_DIRECTIVE}
        return deep_merge(base, own), replace(context, include_chain=(*context.include_chain, name))

    def _process_string(self, value: str, context: ProcessingContext) -> Any:
        if is_reference(value):
            name = reference_name(value)
            if name in context.references:
                return context.references[name]

        if "{" not in value or "}" not in value:
            return value

        single = SINGLE_PLACEHOLDER_PATTERN.match(value)
        if single:
            return self.resolve_placeholder(single.group(1), context)
        return PLACEHOLDER_PATTERN.sub(lambda match: _to_text(self.resolve_placeholder(match.group(1), context)), value)

    def resolve_placeholder(self, placeholder: str, context: ProcessingContext) -> Any:
        """Resolve the text between braces.

        Args:
            placeholder: Placeholder body, e.g. ``faker.email`` or ``items[0].id``.
            context: Resolution context.

        Returns:
            The resolved value, or the placeholder with its braces when nothing applies.

        Examples:
            >>> DataProcessor(seed=1).resolve_placeholder("context.tenant", ProcessingContext(data={"tenant": "t1"}))
            't1'
            >>> DataProcessor(seed=1).resolve_placeholder("unknown", ProcessingContext())
            '{unknown}'
        """
        parts = re.split(r"[:.]", placeholder)
        head = parts[0]

        if head in ("faker", "fake"):
            return self.fake(".".join(parts[1:]))
        if head == "env":
            return os.environ.get(".".join(parts[1:]), "")
        if head == "context" and context.data:
            value = _lookup(context.data, parts[1:])
            return UNRESOLVED_CONTEXT_VALUE if value is None else value
        if "[" in placeholder and "]" in placeholder:
            return self._resolve_array_reference(placeholder, context)

        for source in (context.system_data, context.current_data or {}):
            if isinstance(source.get(placeholder), list):
                return source[placeholder]
        return f"{{{placeholder}}}"

    def _resolve_array_reference(self, placeholder: str, context: ProcessingContext) -> Any:
        """Resolve ``name[i]`` or ``name[i].path`` from system data, then sibling fields."""
        match = ARRAY_PROPERTY_PATTERN.match(placeholder) or ARRAY_ITEM_PATTERN.match(placeholder)
        if not match:
            return f"{{{placeholder}}}"

        array_name, index = match.group(1), int(match.group(2))
        property_path = match.group(3) if match.re is ARRAY_PROPERTY_PATTERN else None

        for source in (context.system_data, context.current_data or {}):
            items = source.get(array_name)
            if isinstance(items, list) and index < len(items):
                item = items[index]
                return _lookup(item, property_path.split(".")) if property_path else item
        return f"{{{placeholder}}}"

    def fake(self, kind: str) -> Any:
        """Generate one fake value.

        Args:
            kind: Generator name, e.g. ``email``, ``person.firstName`` or any
                Faker provider method such as ``ipv4``.

        Returns:
            A generated value; unknown kinds yield ``fake_<kind>_<millis>_<random>``.

        Examples:
            >>> "@" in DataProcessor(seed=3).fake("email")
            True
            >>> DataProcessor(seed=3).fake("nonsense").startswith("fake_nonsense_")
            True
        """
        generator = FAKE_GENERATORS.get(kind)
        if generator is not None:
            return generator(self.faker)

        generator = ITALIAN_GENERATORS.get(kind)
        if generator is not None:
            return generator(self._italian())

        method_name = _snake_case(kind.rsplit(".", 1)[-1])
        if method_name and not method_name.startswith("_") and method_name not in _NON_GENERATOR_ATTRIBUTES:
            method = getattr(self.faker, method_name, None)
            if callable(method):
                try:
                    return method()
                except TypeError:
                    logger.debug("Faker provider %s needs arguments; using fallback value", method_name)

        return f"fake_{kind}_{int(time.time() * 1000)}_{self.faker.lexify('?????????').lower()}"

    def _italian(self) -> Faker:
        if self._italian_faker is None:
            self._italian_faker = Faker("it_IT")
            if self._seed is not None:
                self._italian_faker.seed_instance(self._seed)
        return self._italian_faker
