from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import InvalidPublicationError


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v).strip() for v in value if v is not None and str(v).strip())
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class BibliographicQuery:
    """
    One reference to look up. The title is required; author may be a free-text
    list separated by commas or semicolons.
    """
    title: str
    author: Optional[str] = None
    year: Optional[str] = None
    doi: Optional[str] = None

    def __post_init__(self):
        title = _text_or_none(self.title)
        if not title:
            raise InvalidPublicationError("Publication title is required")
        object.__setattr__(self, "title", title)
        object.__setattr__(self, "author", _text_or_none(self.author))
        object.__setattr__(self, "year", _text_or_none(self.year))
        object.__setattr__(self, "doi", _text_or_none(self.doi))

    @classmethod
    def from_publication(cls, publication: Any) -> "BibliographicQuery":
        """
        Build a query from a publication mapping as sent by callers, accepting
        the alternative keys "authors" and "publishYear".
        """
        if isinstance(publication, BibliographicQuery):
            return publication
        if not isinstance(publication, Mapping):
            raise InvalidPublicationError(f"Publication must be a mapping, got {type(publication).__name__}")
        author = publication.get("author") or publication.get("authors")
        year = publication.get("year") or publication.get("publishYear")
        return cls(
            title=publication.get("title"),
            author=author,
            year=year,
            doi=publication.get("doi"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "author": self.author, "year": self.year, "doi": self.doi}


@dataclass
class AuthorDetail:
    """
    Per-author metadata reported by a source.
    """
    name: str
    orcid: Optional[str] = None
    h_index: Optional[int] = None
    affiliations: List[str] = field(default_factory=list)
    source_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "orcid": self.orcid,
            "hIndex": self.h_index,
            "affiliations": list(self.affiliations),
            "sourceId": self.source_id,
        }


@dataclass
class PartialCitationRecord:
    """
    One source's view of a citation lookup. Counts are None when the source
    did not report them, which is different from a confirmed zero.
    """
    source: str
    citation_count: Optional[int] = None
    h_index: Optional[int] = None
    influential_citation_count: Optional[int] = None
    reference_count: Optional[int] = None
    doi: Optional[str] = None
    journal: Optional[str] = None
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    concepts: List[str] = field(default_factory=list)
    subjects: List[str] = field(default_factory=list)
    is_open_access: Optional[bool] = None
    open_access_status: Optional[str] = None
    author_details: List[AuthorDetail] = field(default_factory=list)
    identifiers: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "citationCount": self.citation_count,
            "hIndex": self.h_index,
            "influentialCitationCount": self.influential_citation_count,
            "referenceCount": self.reference_count,
            "doi": self.doi,
            "journal": self.journal,
            "publisher": self.publisher,
            "publishedDate": self.published_date,
            "title": self.title,
            "url": self.url,
            "authors": list(self.authors),
            "concepts": list(self.concepts),
            "subjects": list(self.subjects),
            "isOpenAccess": self.is_open_access,
            "openAccessStatus": self.open_access_status,
            "authorDetails": [a.to_dict() for a in self.author_details],
            "identifiers": dict(self.identifiers),
        }


@dataclass
class CanonicalCitationRecord:
    """
    The merged result handed back to callers. Either wholly built from real
    source data or wholly synthetic (is_mock_data=True).
    """
    title: str
    author: Optional[str] = None
    citation_count: int = 0
    h_index: Optional[int] = None
    influential_citation_count: Optional[int] = None
    reference_count: Optional[int] = None
    sources: List[str] = field(default_factory=list)
    primary_source: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    concepts: List[str] = field(default_factory=list)
    doi: Optional[str] = None
    journal: Optional[str] = None
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    is_open_access: bool = False
    open_access_status: Optional[str] = None
    is_mock_data: bool = False
    last_updated: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """
        Render the camelCase shape consumed by the rest of the application.
        """
        return {
            "title": self.title,
            "author": self.author,
            "citationCount": self.citation_count,
            "hIndex": self.h_index,
            "influentialCitationCount": self.influential_citation_count,
            "referenceCount": self.reference_count,
            "sources": list(self.sources),
            "primarySource": self.primary_source,
            "authors": list(self.authors),
            "concepts": list(self.concepts),
            "doi": self.doi,
            "journal": self.journal,
            "publisher": self.publisher,
            "publishedDate": self.published_date,
            "isOpenAccess": self.is_open_access,
            "openAccessStatus": self.open_access_status,
            "isMockData": self.is_mock_data,
            "lastUpdated": self.last_updated,
            "details": self.details,
        }
