from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from .config import SlugifyConfig, TaxonomyDefinition
from .content import Page
from .errors import BuildError
from .utils import slugify


class PageCollection(Sequence[Page]):
    """Lightweight helper for working with lists of Pages in templates and code."""

    def __init__(self, pages: Iterable[Page]):
        self._pages = list(pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        return self._pages[item]

    def in_section(self, path: str) -> PageCollection:
        return PageCollection(p for p in self._pages if p.section == path)

    def with_term(self, taxonomy: str, term: str) -> PageCollection:
        return PageCollection(p for p in self._pages if term in p.taxonomies.get(taxonomy, []))

    def featured(self) -> PageCollection:
        return PageCollection(p for p in self._pages if p.options.featured)

    def drafts(self) -> PageCollection:
        return PageCollection(p for p in self._pages if p.draft)

    def published(self) -> PageCollection:
        return PageCollection(p for p in self._pages if not p.draft)

    def sorted(self) -> PageCollection:
        """Date descending, ties broken by source path ascending."""
        return PageCollection(sorted(self._pages, key=lambda p: p.sort_key))

    def latest(self, count: int = 5) -> PageCollection:
        return PageCollection(self.sorted()[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"


@dataclass
class TaxonomyTerm:
    """A term of a taxonomy and the pages that declare it.

    Attributes:
        taxonomy: Taxonomy name, e.g. "tags".
        name: Display string, as written by the first page in the bucket.
        slug: Bucketing key and URL segment.
        url: URL of the term page, e.g. /tags/rust/.
        pages: Pages declaring the term, date descending then path ascending.
    """

    taxonomy: str
    name: str
    slug: str
    url: str
    pages: list[Page] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.pages)


@dataclass
class Taxonomy:
    """A taxonomy with its terms in lexicographic slug order."""

    definition: TaxonomyDefinition
    url: str
    terms: list[TaxonomyTerm] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.definition.name

    def term(self, key: str) -> TaxonomyTerm | None:
        for term in self.terms:
            if key in (term.slug, term.name):
                return term
        return None


class TaxonomyIndexer:
    """Aggregates pages into taxonomy term buckets.

    The index is built in one pass over every published page after the
    whole content graph exists; term membership is never updated page by
    page. The result depends only on the set of pages, not their order.

    Attributes:
        definitions: Enabled taxonomies.
        slugify_config: Slugify strategies; the taxonomies one is used.
    """

    def __init__(
        self,
        definitions: Sequence[TaxonomyDefinition],
        slugify_config: SlugifyConfig | None = None,
    ):
        self.definitions = {d.name: d for d in definitions}
        self.slugify_config = slugify_config or SlugifyConfig()

    def term_slug(self, taxonomy: str, term: str) -> str:
        definition = self.definitions[taxonomy]
        if not definition.slugify:
            return term
        return slugify(term, "taxonomies", self.slugify_config.taxonomies) or term

    def taxonomy_url(self, taxonomy: str) -> str:
        return f"/{self._url_segment(taxonomy)}/"

    def index(self, pages: Iterable[Page]) -> dict[str, Taxonomy]:
        """Index pages by taxonomy term.

        Args:
            pages: Pages of the content graph; drafts are skipped.

        Returns:
            Mapping of taxonomy name to Taxonomy, in definition order.
            Every defined taxonomy is present, even without terms.

        Raises:
            BuildError: If a page declares a taxonomy that is not defined.
        """
        buckets: dict[str, dict[str, list[tuple[Page, str]]]] = {name: {} for name in self.definitions}
        for page in pages:
            if page.draft:
                continue
            for taxonomy, terms in page.taxonomies.items():
                if taxonomy not in self.definitions:
                    raise BuildError(f"Unknown taxonomy '{taxonomy}'", page.path)
                seen: set[str] = set()
                for term in terms:
                    key = self.term_slug(taxonomy, term)
                    if key in seen:
                        continue
                    seen.add(key)
                    buckets[taxonomy].setdefault(key, []).append((page, term))

        result: dict[str, Taxonomy] = {}
        for name, definition in self.definitions.items():
            taxonomy = Taxonomy(definition=definition, url=self.taxonomy_url(name))
            for key in sorted(buckets[name]):
                members = sorted(buckets[name][key], key=lambda item: item[0].sort_key)
                taxonomy.terms.append(
                    TaxonomyTerm(
                        taxonomy=name,
                        name=members[0][1],
                        slug=key,
                        url=f"{taxonomy.url}{self._url_segment(key)}/",
                        pages=[page for page, _ in members],
                    )
                )
            result[name] = taxonomy
        return result

    def _url_segment(self, value: str) -> str:
        return slugify(value, "paths", self.slugify_config.paths) or value


class TaxonomyCollection(Mapping[str, Taxonomy]):
    """Mapping of taxonomy name to Taxonomy with convenience helpers."""

    def __init__(self, mapping: Mapping[str, Taxonomy]):
        self._mapping = dict(mapping)

    def __getitem__(self, key: str) -> Taxonomy:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def terms_for(self, page: Page) -> dict[str, list[TaxonomyTerm]]:
        """Terms a page belongs to, per taxonomy, in slug order."""
        found: dict[str, list[TaxonomyTerm]] = {}
        for name in page.taxonomies:
            taxonomy = self._mapping.get(name)
            if taxonomy is not None:
                found[name] = [t for t in taxonomy.terms if any(p is page for p in t.pages)]
        return found

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TaxonomyCollection({len(self._mapping)} taxonomies)"
